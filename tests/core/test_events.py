import queue
import uuid
from workshop_capture.core.common.enums import ControllerState, PipelineStatus
from workshop_capture.core.events.bus import EventBus
from workshop_capture.core.events.types import (
    ControllerStateChanged, Event, SegmentStatusChanged, SnapshotPublished
)


def _status(index, status=PipelineStatus.STORING):
    return SegmentStatusChanged(recording_id=uuid.uuid4(), index=index, status=status)


def test_handlers_receive_only_their_event_type():
    bus = EventBus()
    statuses, everything = [], []
    bus.subscribe(SegmentStatusChanged, statuses.append)
    bus.subscribe(Event, everything.append)

    bus.publish(_status(0))
    bus.publish(ControllerStateChanged("q-1", ControllerState.IDLE, ControllerState.RECORDING))

    assert len(statuses) == 1
    assert len(everything) == 2


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(SegmentStatusChanged, received.append)

    bus.publish(_status(0))
    unsubscribe()
    bus.publish(_status(1))

    assert [e.index for e in received] == [0]


def test_failing_handler_does_not_reach_publisher():
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("UI widget gone")

    bus.subscribe(SegmentStatusChanged, broken)
    bus.subscribe(SegmentStatusChanged, received.append)

    bus.publish(_status(3))

    assert [e.index for e in received] == [3]


def test_stream_queues_events_in_publish_order():
    bus = EventBus()
    events = bus.stream(SnapshotPublished)
    answer_id = uuid.uuid4()

    bus.publish(_status(0))
    bus.publish(SnapshotPublished(answer_id, 1, 0, False))
    bus.publish(SnapshotPublished(answer_id, 2, 1, True))

    assert events.get_nowait().version == 1
    assert events.get_nowait().version == 2
    try:
        events.get_nowait()
        assert False, "Only snapshot events should be streamed"
    except queue.Empty:
        pass
