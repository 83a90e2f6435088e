from datetime import datetime

import pytest

from sheetflow.errors import SheetFlowQueryError
from sheetflow.query import (AggregateSpec, Query, aggregate, filter_records, group, matches,
                             matches_exact, paginate, project, run_aggregate, run_find, sort_records)

@pytest.fixture
def people():
    return [
        {"name": "Ann", "country": "USA", "age": 30, "_row": 2},
        {"name": "Bob", "country": "USA", "age": 40, "_row": 3},
        {"name": "Cy", "country": "UK", "age": 25, "_row": 4},
        {"name": "Di", "country": "UK", "_row": 5},
    ]

def names(records):
    return [r["name"] for r in records]

def test_equality(people):
    assert(names(filter_records(people, {"country": "UK"})) == ["Cy", "Di"])
    assert(names(filter_records(people, {"country": "UK", "age": 25})) == ["Cy"])
    assert(filter_records(people, {"country": "FR"}) == [])
    assert(filter_records(people, None) == people)
    assert(filter_records(people, {}) == people)

def test_operators(people):
    assert(names(filter_records(people, {"age": {"$gt": 30}})) == ["Bob"])
    assert(names(filter_records(people, {"age": {"$gte": 30}})) == ["Ann", "Bob"])
    assert(names(filter_records(people, {"age": {"$lt": 30}})) == ["Cy"])
    assert(names(filter_records(people, {"age": {"$gte": 25, "$lte": 30}})) == ["Ann", "Cy"])
    assert(names(filter_records(people, {"name": {"$in": ["Ann", "Di"]}})) == ["Ann", "Di"])
    assert(names(filter_records(people, {"name": {"$nin": ["Ann", "Di"]}})) == ["Bob", "Cy"])
    assert(names(filter_records(people, {"country": {"$eq": "USA"}})) == ["Ann", "Bob"])
    assert(names(filter_records(people, {"age": {"$ne": 30}})) == ["Bob", "Cy", "Di"])

def test_missing_and_mixed_values(people):
    # a record without the field never satisfies an ordering operator
    assert("Di" not in names(filter_records(people, {"age": {"$lt": 100}})))
    # neither does a value that can't be compared
    assert(filter_records([{"age": "old"}], {"age": {"$gt": 3}}) == [])

def test_dates():
    records = [{"d": datetime(2024, 1, 1)}, {"d": datetime(2024, 6, 1)}]
    assert(filter_records(records, {"d": {"$gte": "2024-03-01"}}) == [records[1]])
    assert(filter_records(records, {"d": "2024-01-01T00:00:00"}) == [records[0]])

def test_bad_operators(people):
    with pytest.raises(SheetFlowQueryError):
        filter_records(people, {"name": {"$regex": "A.*"}})
    with pytest.raises(SheetFlowQueryError):
        filter_records(people, {"name": {"$in": "Ann"}})

def test_filter_is_subset(people):
    where = {"age": {"$gte": 26}, "country": "USA"}
    out = filter_records(people, where)
    assert(all(r in people for r in out))
    assert(all(matches(r, where) for r in out))
    assert(all(r in out for r in people if matches(r, where)))
    # input order is kept
    assert(out == [r for r in people if r in out])

def test_empty_condition_matches_all():
    assert(filter_records([{"a": 1}, {"b": 2}], {"a": {}}) == [{"a": 1}, {"b": 2}])
    assert(matches({"a": 1}, {"a": {}, "b": None}))
    # update/delete compare it as a value
    assert(not matches_exact({"a": 1}, {"a": {}}))

def test_matches_exact(people):
    assert(matches_exact(people[0], {"name": "Ann", "age": 30}))
    assert(not matches_exact(people[0], {"age": {"$gte": 18}}))
    assert(matches_exact(people[0], {}))

def test_sort(people):
    assert(names(sort_records(people, "age")) == ["Cy", "Ann", "Bob", "Di"])
    assert(names(sort_records(people, "age", "desc")) == ["Bob", "Ann", "Cy", "Di"])
    assert(names(sort_records(people, "age", "-1")) == ["Bob", "Ann", "Cy", "Di"])
    with pytest.raises(SheetFlowQueryError):
        sort_records(people, "age", "sideways")
    with pytest.raises(SheetFlowQueryError):
        sort_records([{"v": 1}, {"v": "a"}], "v")

def test_sort_stable(people):
    # equal keys keep their input order in both directions
    assert(names(sort_records(people, "country")) == ["Cy", "Di", "Ann", "Bob"])
    assert(names(sort_records(people, "country", "desc")) == ["Ann", "Bob", "Cy", "Di"])

def test_paginate():
    records = list(range(10))
    assert(paginate(records, 2, 3) == [2, 3, 4])
    assert(paginate(records, 8, 5) == [8, 9])
    assert(paginate(records, 20, 5) == [])
    assert(paginate(records) == records)
    assert(paginate(records, 0, 0) == [])
    with pytest.raises(SheetFlowQueryError):
        paginate(records, -1)
    # the input is never touched and the same call gives the same page
    assert(records == list(range(10)))
    assert(paginate(records, 2, 3) == paginate(records, 2, 3))
    page = paginate(records, 0, 3)
    page.append(99)
    assert(records == list(range(10)))

def test_project(people):
    out = project(people, ["name"])
    assert(out[0] == {"name": "Ann", "_row": 2})
    assert(project(people, []) == people)

def test_find_order(people):
    q = {"where": {"country": "USA"}, "sort": ("age", "desc"), "limit": 1}
    assert(names(run_find(people, q)) == ["Bob"])
    q = {"sort": {"age": "asc"}, "offset": 1, "limit": 2, "select": ["name"]}
    assert(run_find(people, q) == [{"name": "Ann", "_row": 2}, {"name": "Bob", "_row": 3}])

def test_query_parse():
    q = Query.parse({"sort": "age"})
    assert(q.sort == ("age", "asc"))
    assert(Query.parse(q) is q)
    with pytest.raises(SheetFlowQueryError):
        Query.parse({"filter": {}})
    with pytest.raises(SheetFlowQueryError):
        Query.parse({"limit": -1})
    with pytest.raises(SheetFlowQueryError):
        Query.parse({"sort": {"a": "asc", "b": "desc"}})

def test_group(people):
    groups = group(people, "country")
    assert(list(groups) == ["USA", "UK"])
    assert(names(groups["UK"]) == ["Cy", "Di"])
    assert(list(group(people, "$country")) == ["USA", "UK"])
    assert(list(group(people, "all")) == ["all"])

def test_count_all(people):
    out = run_aggregate(people, {"group_by": "all", "metrics": {"n": {"$count": "$name"}}})
    assert(out == [{"_id": "all", "n": len(people)}])

def test_average_by_country():
    records = [
        {"country": "USA", "age": 20},
        {"country": "USA", "age": 40},
        {"country": "UK", "age": 30},
    ]
    out = run_aggregate(records, {"group_by": "country", "metrics": {"avgAge": {"$avg": "age"}}})
    assert(out == [{"_id": "USA", "avgAge": 30}, {"_id": "UK", "avgAge": 30}])

def test_metrics(people):
    spec = {
        "group_by": "$country",
        "metrics": {
            "total": {"$sum": "$age"},
            "youngest": {"$min": "$age"},
            "oldest": ("$max", "age"),
            "n": {"$count": None},
        }
    }
    out = run_aggregate(people, spec)
    assert(out[0] == {"_id": "USA", "total": 70, "youngest": 30, "oldest": 40, "n": 2})
    # missing values are skipped by sum/min/max but still count
    assert(out[1] == {"_id": "UK", "total": 25, "youngest": 25, "oldest": 25, "n": 2})

def test_numeric_strings():
    out = run_aggregate([{"v": "2"}, {"v": "3.5"}, {"v": ""}], {"metrics": {"s": {"$sum": "v"}}})
    assert(out == [{"_id": "all", "s": 5.5}])
    with pytest.raises(SheetFlowQueryError):
        run_aggregate([{"v": "abc"}], {"metrics": {"s": {"$sum": "v"}}})

def test_average_of_empty_group():
    with pytest.raises(SheetFlowQueryError):
        aggregate({"all": []}, {"avg": ("$avg", "age")})
    # the other reductions are defined on nothing
    assert(aggregate({"all": []}, {"n": ("$count", None), "s": ("$sum", "age"), "m": ("$min", "age")}) ==
           [{"_id": "all", "n": 0, "s": 0, "m": None}])

def test_having(people):
    spec = {"group_by": "country", "metrics": {"n": {"$count": 1}, "total": {"$sum": "age"}},
            "having": {"total": {"$gt": 50}}}
    assert(run_aggregate(people, spec) == [{"_id": "USA", "n": 2, "total": 70}])

def test_group_form(people):
    spec = AggregateSpec.parse({"$group": {"_id": "$country", "avgAge": {"$avg": "$age"}},
                                "having": {"avgAge": {"$lt": 20}}})
    assert(spec.group_by == "$country")
    assert(spec.metrics == {"avgAge": ("$avg", "age")})
    assert(run_aggregate(people, spec) == [{"_id": "UK", "avgAge": 12.5}])

def test_aggregate_parse_errors():
    with pytest.raises(SheetFlowQueryError):
        AggregateSpec.parse({"metrics": {"x": {"$median": "age"}}})
    with pytest.raises(SheetFlowQueryError):
        AggregateSpec.parse({"metrics": {"x": {"$sum": ""}}})
    with pytest.raises(SheetFlowQueryError):
        AggregateSpec.parse({"metrics": {"_id": {"$count": 1}}})
    with pytest.raises(SheetFlowQueryError):
        AggregateSpec.parse({"$group": {"n": {"$count": 1}}})
    with pytest.raises(SheetFlowQueryError):
        AggregateSpec.parse({"group": "country"})
