"""
Schema rules for tables.
A table schema is declared as compact rule strings, one per field:

    {"name": "string:required", "email": "string:email:required", "age": "number:min(0)"}

The first token is the type, the rest are modifiers.  Strings are parsed once
into Rule dataclasses when the table is defined and a pydantic model is built
from them, so each validate() call is just a model_validate() on the record.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Annotated, Any, Mapping, Optional
import json
import logging
import re

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, StrictBool, create_model
from pydantic import ValidationError as PydanticValidationError

from .errors import SheetFlowConfigurationError, SheetFlowValidationError, Violation

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

RULE_KINDS = ("string", "number", "boolean", "date", "array")

_BOUND_RE = re.compile(r"^(?P<name>min|max)\((?P<value>-?\d+(\.\d+)?)\)$")
_ENUM_RE = re.compile(r"^enum\((?P<values>.*)\)$")

_TRUE_STRINGS = ("true", "yes", "1")
_FALSE_STRINGS = ("false", "no", "0")


@dataclass(frozen=True)
class Rule():
    """
    Compiled constraint for a single field.
    min/max only apply to number, pattern only to string.
    """
    kind: str = "any"
    required: bool = False
    min: int|float|None = None
    max: int|float|None = None
    pattern: str|None = None
    enum: frozenset|None = None

    def __str__(self) -> str:
        parts = [self.kind]
        if self.required:
            parts.append("required")
        if self.min is not None:
            parts.append(f"min({self.min})")
        if self.max is not None:
            parts.append(f"max({self.max})")
        if self.pattern:
            parts.append("email" if self.pattern == EMAIL_PATTERN else f"pattern({self.pattern})")
        if self.enum:
            parts.append(f"enum({','.join(sorted(str(e) for e in self.enum))})")
        return ":".join(parts)


def _to_number(token: str) -> int|float:
    return float(token) if "." in token else int(token)


def parse_rule(rule: str) -> Rule:
    """
    Parse a single rule string into a Rule.
    Unknown type tokens give an 'any' rule.  Modifiers that don't apply to
    the type are dropped, unknown modifiers are a configuration error.
    """
    tokens = [t.strip() for t in str(rule).split(":")]
    kind = tokens[0] if tokens[0] in RULE_KINDS else "any"
    if kind != tokens[0]:
        logger.debug("unknown rule type %r, no type check will be applied", tokens[0])
    args: dict[str, Any] = {"kind": kind}
    for token in tokens[1:]:
        if not token:
            continue
        bound = _BOUND_RE.match(token)
        choices = _ENUM_RE.match(token)
        if token == "required":
            args["required"] = True
        elif token == "email":
            if kind == "string":
                args["pattern"] = EMAIL_PATTERN
            else:
                logger.debug("email modifier ignored on %s rule", kind)
        elif bound:
            if kind == "number":
                args[bound.group("name")] = _to_number(bound.group("value"))
            else:
                logger.debug("%s modifier ignored on %s rule", bound.group("name"), kind)
        elif choices:
            raw = [v.strip() for v in choices.group("values").split(",") if v.strip()]
            if kind == "number":
                try:
                    raw = [_to_number(v) for v in raw]
                except ValueError:
                    raise SheetFlowConfigurationError(f"Non numeric enum value in rule: {rule}")
            elif kind == "boolean":
                raw = [v.lower() in _TRUE_STRINGS for v in raw]
            args["enum"] = frozenset(raw)
        else:
            raise SheetFlowConfigurationError(f"Unknown rule modifier '{token}' in rule: {rule}")
    return Rule(**args)


def _not_bool(value: Any) -> Any:
    # bool is an int subclass, float() would take it
    if isinstance(value, bool):
        raise ValueError("Input should be a valid number, not a boolean")
    return value


def _bool_string(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return value


def _annotation(rule: Rule) -> Any:
    """
    Translate a Rule into the pydantic type annotation that enforces it.
    """
    constraints: dict[str, Any] = {}
    before: Any = None
    base: Any = Any
    if rule.kind == "string":
        base = str
        if rule.pattern:
            constraints["pattern"] = rule.pattern
        if rule.required:
            # a blank cell is as good as missing
            constraints["min_length"] = 1
    elif rule.kind == "number":
        base = float
        before = BeforeValidator(_not_bool)
        if rule.min is not None:
            constraints["ge"] = rule.min
        if rule.max is not None:
            constraints["le"] = rule.max
    elif rule.kind == "boolean":
        base = StrictBool
        before = BeforeValidator(_bool_string)
    elif rule.kind == "date":
        base = datetime|date
    elif rule.kind == "array":
        base = list
    metadata: list[Any] = []
    if constraints:
        metadata.append(Field(**constraints))
    # runs ahead of the type check, so it wraps the constraints
    if before is not None:
        metadata.append(before)
    if rule.enum is not None:
        allowed = rule.enum
        def _check_enum(value: Any) -> Any:
            if value not in allowed:
                choices = ", ".join(sorted(str(a) for a in allowed))
                raise ValueError(f"Value must be one of: {choices}")
            return value
        metadata.append(AfterValidator(_check_enum))
    if metadata:
        return Annotated[base, *metadata]
    return base


def _build_model(name: str, rules: Mapping[str, Rule], partial: bool) -> type[BaseModel]:
    """
    Field names in a sheet can be anything (spaces, leading underscores) so
    the model uses positional attribute names and the real name as the alias.
    """
    definitions: dict[str, Any] = {}
    for i, (fname, rule) in enumerate(rules.items()):
        annotation = _annotation(rule)
        if rule.required and not partial:
            definitions[f"f{i}"] = (annotation, Field(alias=fname))
        else:
            definitions[f"f{i}"] = (Optional[annotation], Field(default=None, alias=fname))
    return create_model(name, __config__=ConfigDict(extra="allow"), **definitions)


class Schema():
    """
    Compiled, read-only mapping of field name to Rule.
    """
    def __init__(self, rules: Mapping[str, Rule], name: str = "Record") -> None:
        self._rules = MappingProxyType(dict(rules))
        self._name = name
        self._model = _build_model(name, self._rules, partial=False)
        self._partial_model = _build_model(f"{name}Patch", self._rules, partial=True)

    def __bool__(self) -> bool:
        return bool(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: str) -> bool:
        return name in self._rules

    def __getitem__(self, name: str) -> Rule:
        return self._rules[name]

    def __iter__(self):
        return iter(self._rules)

    def __str__(self) -> str:
        return str({k: str(v) for k,v in self._rules.items()})

    def __repr__(self) -> str:
        return f"{self.__class__}:{str(self)}"

    @property
    def rules(self) -> Mapping[str, Rule]:
        return self._rules

    @property
    def fields(self) -> list[str]:
        return list(self._rules)

    def model(self, partial: bool = False) -> type[BaseModel]:
        return self._partial_model if partial else self._model


def compile_schema(schema: Mapping[str, str]|None, name: str = "Record") -> Schema:
    """
    Parse all rule strings of a table schema.
    Done once when the table is defined.
    """
    rules = {str(k): parse_rule(v) for k,v in dict(schema or {}).items()}
    return Schema(rules, name)


def validate(record: Mapping[str, Any], schema: Schema, partial: bool = False) -> None:
    """
    Check a record against a compiled schema, raising SheetFlowValidationError
    with every violation found.  Fields without a rule are not checked.
    partial skips the presence check for required fields, for merge patches.
    """
    if not schema:
        return
    try:
        schema.model(partial).model_validate(dict(record))
    except PydanticValidationError as e:
        # a union (date) fails once per member, one violation per field is enough
        violations: dict[str, Violation] = {}
        for err in e.errors():
            name = str(err["loc"][0]) if err["loc"] else "<record>"
            if name not in violations:
                violations[name] = Violation(field=name, message=err["msg"], kind=err["type"])
        raise SheetFlowValidationError("Validation failed", list(violations.values())) from e


def _coerce_value(value: Any, rule: Rule) -> Any:
    if value is None:
        return None
    if rule.kind == "number" and isinstance(value, str):
        s = value.strip().replace(",", "")
        if not s:
            return None
        try:
            return int(s)
        except ValueError:
            pass
        try:
            return float(s)
        except ValueError:
            return value
    elif rule.kind == "boolean" and isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE_STRINGS:
            return True
        if s in _FALSE_STRINGS:
            return False
        if not s:
            return None
    elif rule.kind == "date" and isinstance(value, str):
        if not value.strip():
            return None
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return value
    elif rule.kind == "array" and isinstance(value, str):
        # arrays are stored as JSON text
        if not value.strip():
            return None
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return value
        if isinstance(parsed, list):
            return parsed
    elif rule.kind == "string" and not isinstance(value, bool):
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (int, float)):
            return str(value)
    return value


def coerce_record(record: Mapping[str, Any], schema: Schema|None) -> dict[str, Any]:
    """
    Convert loosely typed cell values to what the schema says they are.
    Values that cannot be converted are left as they came from the store.
    """
    out = dict(record)
    if schema:
        for name, rule in schema.rules.items():
            if name in out:
                out[name] = _coerce_value(out[name], rule)
    return out
