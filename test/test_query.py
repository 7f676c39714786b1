# test/test_query.py
import pytest

from batchtrace.core import (
    ChannelConfig,
    ChannelQuery,
    InvalidQuery,
    MetricInput,
    TimeWindow,
    build_boundary_queries,
    build_page_queries,
    map_metric_input_to_query,
)


CONFIG = ChannelConfig(
    trigger=MetricInput(selector="trigger", transform="abs"),
    labels=(MetricInput(selector="recipe", unit="-", decimals=1, factor=2.0),),
)


def test_map_metric_input_to_query():
    query = map_metric_input_to_query(CONFIG.labels[0])
    assert query == ChannelQuery(selector="recipe", unit="-", decimals=1, factor=2.0)


def test_query_validation():
    with pytest.raises(InvalidQuery):
        ChannelQuery(selector="")
    with pytest.raises(InvalidQuery):
        ChannelQuery(selector="a", offset=-1)
    with pytest.raises(InvalidQuery):
        ChannelQuery(selector="a", limit=0)
    with pytest.raises(InvalidQuery):
        ChannelQuery(selector="a", start=5, end=4)


def test_build_page_queries_keeps_channel_order():
    queries = build_page_queries(CONFIG, offset=5000, limit=5000)

    assert [q.selector for q in queries] == ["trigger", "recipe"]
    assert all(q.offset == 5000 and q.limit == 5000 for q in queries)
    assert queries[0].post_transform == "abs"
    assert not any(q.is_snapshot for q in queries)


def test_build_boundary_queries():
    queries = build_boundary_queries(CONFIG, TimeWindow(start=60_000, end=90_000))

    assert all(q.is_snapshot for q in queries)
    assert [(q.start, q.end, q.limit) for q in queries] == [(30_000, 60_000, 1)] * 2
    assert queries[1].to_dict() == {
        "selector": "recipe",
        "postAggr": "last",
        "unit": "-",
        "decimals": 1,
        "factor": 2.0,
        "limit": 1,
        "from": "1970-01-01T00:00:30.000Z",
        "to": "1970-01-01T00:01:00.000Z",
    }


def test_page_query_to_dict_omits_unset_fields():
    payload = ChannelQuery(selector="trigger", offset=0, limit=5000).to_dict()
    assert payload == {"selector": "trigger", "offset": 0, "limit": 5000}
