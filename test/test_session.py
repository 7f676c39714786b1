# test/test_session.py
import pytest

from batchtrace.core import Batch, BatchSession, ChannelConfig, DriverState, PagingConfig, TimeWindow
from batchtrace.io.transport import InMemoryTransport, recording_from_pairs


INPUTS = {
    "batchTrigger": {"metric": {"selector": "Line1.Trigger"}},
    "metrics": [{"column": {"metric": {"selector": "Line1.Recipe"}}}],
}


def _transport(**kwargs):
    return InMemoryTransport(
        [
            recording_from_pairs(
                "Line1.Trigger",
                [(9_000, 1), (11_000, 1), (12_000, 0), (13_000, 1), (14_000, 0), (15_000, 1)],
            ),
            recording_from_pairs("Line1.Recipe", [(9_500, "pre"), (11_000, "soup"), (13_000, "stew")]),
        ],
        **kwargs,
    )


@pytest.mark.integration
def test_session_end_to_end():
    updates = []
    session = BatchSession(
        _transport(),
        ChannelConfig.from_inputs(INPUTS),
        TimeWindow(start=10_000, end=20_000),
        batch_start_value="1",
        batch_end_value="0",
        on_batches=lambda batches, has_more: updates.append((batches, has_more)),
    )
    session.start()

    # after the first page, before the window-start seed arrives
    first_batches, first_more = updates[0]
    assert first_more is True
    assert first_batches == [
        Batch(13_000, 14_000, ("stew",)),
        Batch(11_000, 12_000, ("soup",)),
    ]
    assert len(updates) == 3

    assert session.batches == [
        Batch(13_000, 14_000, ("stew",)),
        Batch(10_000, 12_000, ("pre",)),
    ]
    assert session.has_more is False
    assert session.driver.state is DriverState.DONE
    assert [b.to_dict() for b in session.batches][1] == {
        "startTime": 10_000,
        "endTime": 12_000,
        "columns": ["pre"],
    }


@pytest.mark.integration
def test_session_continuous_mode_with_deferred_transport():
    transport = _transport(deferred=True)
    session = BatchSession(
        transport,
        ChannelConfig.from_inputs(INPUTS),
        TimeWindow(start=10_000, end=20_000),
        batch_start_value=1,
        batch_end_value=1,
    )
    session.start()
    assert session.has_more is True
    assert session.batches == []

    transport.flush()
    assert [(b.start_time, b.end_time) for b in session.batches] == [
        (13_000, 15_000),
        (11_000, 13_000),
        (10_000, 11_000),
    ]


@pytest.mark.integration
def test_session_update_window_and_destroy():
    transport = _transport(deferred=True)
    session = BatchSession(
        transport,
        ChannelConfig.from_inputs(INPUTS),
        TimeWindow(start=10_000, end=20_000),
        batch_start_value="1",
        batch_end_value="0",
    )
    session.start()
    transport.flush()

    session.update_window(TimeWindow(start=12_500, end=20_000))
    assert session.batches == []
    transport.flush()
    assert session.batches == [Batch(13_000, 14_000, ("stew",))]

    session.start()
    session.destroy()
    assert transport.flush() == 0
    assert session.has_more is False
    assert session.driver.state is DriverState.IDLE


@pytest.mark.integration
def test_session_pages_one_sample_at_a_time():
    transport = InMemoryTransport([
        recording_from_pairs("Line1.Trigger", [(10_000 + i, i % 2) for i in range(400)]),
    ])
    session = BatchSession(
        transport,
        ChannelConfig.from_inputs({"batchTrigger": {"metric": {"selector": "Line1.Trigger"}}}),
        TimeWindow(start=10_000, end=20_000),
        batch_start_value="1",
        batch_end_value="0",
        paging=PagingConfig(page_size=1),
    )
    session.start()

    assert session.driver.state is DriverState.DONE
    assert len(session.batches) == 199
    assert session.batches[0] == Batch(10_397, 10_398, ())
    assert session.batches[-1] == Batch(10_001, 10_002, ())
