from datetime import datetime

import pytest

from sheetflow.errors import SheetFlowConfigurationError, SheetFlowValidationError
from sheetflow.validation import EMAIL_PATTERN, Rule, compile_schema, coerce_record, parse_rule, validate

USERS = {
    "name": "string:required",
    "email": "string:email:required",
    "age": "number:min(0):max(150)",
}

def test_parse_rule():
    r = parse_rule("number:required:min(0):max(120)")
    assert(r.kind == "number")
    assert(r.required)
    assert(r.min == 0)
    assert(r.max == 120)
    assert(str(r) == "number:required:min(0):max(120)")

    r = parse_rule("string:email")
    assert(r.pattern == EMAIL_PATTERN)
    assert(not r.required)
    assert(str(r) == "string:email")

    assert(parse_rule("number:min(-1.5)").min == -1.5)
    assert(parse_rule("string:enum(a, b)").enum == frozenset({"a", "b"}))
    assert(parse_rule("number:enum(1,2)").enum == frozenset({1, 2}))

def test_unknown_type_is_any():
    r = parse_rule("decimal:required")
    assert(r.kind == "any")
    assert(r.required)

def test_inapplicable_modifiers_dropped():
    assert(parse_rule("boolean:min(1)") == Rule(kind="boolean"))
    assert(parse_rule("number:email") == Rule(kind="number"))

def test_unknown_modifier():
    with pytest.raises(SheetFlowConfigurationError):
        parse_rule("string:bogus")
    with pytest.raises(SheetFlowConfigurationError):
        compile_schema({"name": "string:required:unique"})
    with pytest.raises(SheetFlowConfigurationError):
        parse_rule("number:enum(1,two)")

def test_schema():
    schema = compile_schema(USERS, "Users")
    assert(len(schema) == 3)
    assert(schema.fields == ["name", "email", "age"])
    assert("email" in schema)
    assert(schema["age"].min == 0)
    with pytest.raises(TypeError):
        schema.rules["age"] = Rule()
    assert(not compile_schema(None))

def test_valid_record():
    schema = compile_schema(USERS)
    validate({"name": "Ann", "email": "ann@example.com", "age": 30}, schema)
    # optional fields may be missing, unknown fields are not checked
    validate({"name": "Ann", "email": "ann@example.com", "nickname": 12}, schema)
    # nothing to check against
    validate({"anything": object()}, compile_schema({}))

def test_negative_age():
    schema = compile_schema({"name": "string:required", "age": "number:min(0)"})
    with pytest.raises(SheetFlowValidationError) as e:
        validate({"name": "Ann", "age": -5}, schema)
    assert(e.value.fields == ["age"])
    assert("age" in str(e.value))

def test_all_violations_reported():
    schema = compile_schema(USERS)
    with pytest.raises(SheetFlowValidationError) as e:
        validate({"name": "", "email": "not-an-email", "age": 200}, schema)
    assert(set(e.value.fields) == {"name", "email", "age"})
    assert(len(e.value.violations) == 3)

def test_required_missing():
    schema = compile_schema(USERS)
    with pytest.raises(SheetFlowValidationError) as e:
        validate({"age": 3}, schema)
    assert(set(e.value.fields) == {"name", "email"})
    assert(all(v.kind == "missing" for v in e.value.violations))

def test_types():
    schema = compile_schema({"n": "number", "s": "string", "b": "boolean", "d": "date", "a": "array"})
    validate({"n": "12.5", "s": "x", "b": True, "d": "2024-03-01", "a": [1, 2]}, schema)
    with pytest.raises(SheetFlowValidationError) as e:
        validate({"n": "twelve", "s": 5, "d": "someday", "a": 3}, schema)
    assert(set(e.value.fields) == {"n", "s", "d", "a"})

def test_enum():
    schema = compile_schema({"role": "string:enum(admin,user)", "level": "number:enum(1,2)"})
    validate({"role": "admin", "level": 2}, schema)
    with pytest.raises(SheetFlowValidationError) as e:
        validate({"role": "root", "level": 3}, schema)
    assert(set(e.value.fields) == {"role", "level"})

def test_partial():
    schema = compile_schema(USERS)
    validate({"age": 31}, schema, partial=True)
    with pytest.raises(SheetFlowValidationError) as e:
        validate({"age": -1}, schema, partial=True)
    assert(e.value.fields == ["age"])
    with pytest.raises(SheetFlowValidationError):
        validate({"email": "nope"}, schema, partial=True)

def test_any_rule_required():
    schema = compile_schema({"tag": "whatever:required"})
    validate({"tag": 3}, schema)
    validate({"tag": [1]}, schema)
    with pytest.raises(SheetFlowValidationError):
        validate({}, schema)

def test_coerce_record():
    schema = compile_schema({"age": "number", "score": "number", "active": "boolean",
                             "name": "string", "joined": "date", "blank": "number"})
    r = coerce_record({"age": "42", "score": "1,234.5", "active": "TRUE", "name": 7,
                       "joined": "2024-01-02", "blank": "", "other": "7"}, schema)
    assert(r["age"] == 42)
    assert(r["score"] == 1234.5)
    assert(r["active"] is True)
    assert(r["name"] == "7")
    assert(r["joined"] == datetime(2024, 1, 2))
    assert(r["blank"] is None)
    # fields without a rule are left alone
    assert(r["other"] == "7")

def test_coerce_leaves_garbage():
    schema = compile_schema({"age": "number", "joined": "date", "active": "boolean"})
    r = coerce_record({"age": "n/a", "joined": "soon", "active": "maybe"}, schema)
    assert(r == {"age": "n/a", "joined": "soon", "active": "maybe"})
    assert(coerce_record({"x": 1}, None) == {"x": 1})

def test_number_is_not_bool():
    schema = compile_schema({"age": "number:min(0)"})
    with pytest.raises(SheetFlowValidationError) as e:
        validate({"age": True}, schema)
    assert(e.value.fields == ["age"])
    with pytest.raises(SheetFlowValidationError):
        validate({"age": -1}, schema)
    validate({"age": 0}, schema)

def test_boolean_is_strict():
    schema = compile_schema({"active": "boolean"})
    for value in (1, 0, "yes", "on", "1"):
        with pytest.raises(SheetFlowValidationError):
            validate({"active": value}, schema)
    for value in (True, False, "true", "FALSE"):
        validate({"active": value}, schema)
    enum = compile_schema({"active": "boolean:enum(true)"})
    validate({"active": "true"}, enum)
    with pytest.raises(SheetFlowValidationError):
        validate({"active": False}, enum)

def test_coerce_array():
    schema = compile_schema({"tags": "array"})
    assert(coerce_record({"tags": '["a", 1]'}, schema)["tags"] == ["a", 1])
    assert(coerce_record({"tags": ""}, schema)["tags"] is None)
    # not a JSON array, left as read
    assert(coerce_record({"tags": "a, b"}, schema)["tags"] == "a, b")
    assert(coerce_record({"tags": '{"a": 1}'}, schema)["tags"] == '{"a": 1}')
    assert(coerce_record({"tags": ["x"]}, schema)["tags"] == ["x"])
