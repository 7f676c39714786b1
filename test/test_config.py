# test/test_config.py
import pytest

from batchtrace.core import ChannelConfig, InvalidConfig, InvalidWindow, MetricInput, PagingConfig, TimeWindow
from batchtrace.core.config import to_iso


INPUTS = {
    "batchTrigger": {"metric": {"selector": "Line1.Trigger", "aggregator": "last"}},
    "metrics": [
        {"column": {"metric": {"selector": "Line1.Recipe", "unit": "-", "decimals": 2}}},
        {"column": {"metric": {"selector": "Line1.Operator", "factor": "x"}}},
    ],
}


def test_metric_input_rejects_blank_selector():
    with pytest.raises(InvalidConfig):
        MetricInput(selector="")


def test_metric_input_rejects_non_numeric_decimals():
    with pytest.raises(InvalidConfig):
        MetricInput(selector="a", decimals="2")


def test_metric_input_from_mapping_ignores_bad_numbers():
    metric = MetricInput.from_mapping({"selector": "a", "decimals": True, "factor": "2", "unit": ""})
    assert metric == MetricInput(selector="a")


def test_channel_config_from_inputs():
    config = ChannelConfig.from_inputs(INPUTS)

    assert config.trigger == MetricInput(selector="Line1.Trigger", aggregator="last")
    assert [m.selector for m in config.labels] == ["Line1.Recipe", "Line1.Operator"]
    assert config.labels[0].decimals == 2
    assert config.labels[1].factor is None
    assert config.channels[0] is config.trigger


def test_channel_config_without_labels():
    config = ChannelConfig.from_inputs({"batchTrigger": {"metric": {"selector": "t"}}})
    assert config.labels == ()
    assert config.channels == (config.trigger,)


@pytest.mark.parametrize(
    "inputs",
    [
        {},
        {"batchTrigger": {}},
        {"batchTrigger": {"metric": {"selector": "t"}}, "metrics": [{"metric": {"selector": "x"}}]},
    ],
)
def test_channel_config_from_inputs_rejects_malformed(inputs):
    with pytest.raises(InvalidConfig):
        ChannelConfig.from_inputs(inputs)


def test_channel_config_labels_become_tuple():
    config = ChannelConfig(trigger=MetricInput("t"), labels=[MetricInput("a")])
    assert isinstance(config.labels, tuple)


def test_time_window_validation():
    with pytest.raises(InvalidWindow):
        TimeWindow(start=10, end=5)
    with pytest.raises(InvalidWindow):
        TimeWindow(start=1.5, end=5)
    with pytest.raises(InvalidWindow):
        TimeWindow(start=True, end=5)


def test_time_window_lookback():
    window = TimeWindow(start=10_000, end=25_000)
    assert window.width == 15_000
    assert window.lookback() == (-5_000, 10_000)


def test_paging_config_defaults_and_validation():
    assert PagingConfig().page_size == 5000
    assert PagingConfig().load_boundary is True
    with pytest.raises(InvalidConfig):
        PagingConfig(page_size=0)


def test_to_iso():
    assert to_iso(0) == "1970-01-01T00:00:00.000Z"
    assert to_iso(1_704_067_201_500) == "2024-01-01T00:00:01.500Z"


def test_metric_input_from_mapping_keeps_numbers_as_given():
    metric = MetricInput.from_mapping({"selector": "a", "decimals": 1.5, "factor": 3})
    assert metric.decimals == 1.5
    assert metric.factor == 3
