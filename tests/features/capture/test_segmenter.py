import pytest
from workshop_capture.core.errors import DeviceUnavailable, InvalidStateTransition
from workshop_capture.features.capture.service.segmenter import Segmenter


@pytest.fixture
def collected():
    return {"segments": [], "finished": []}


@pytest.fixture
def segmenter(device, encoder, collected):
    return Segmenter(
        device=device,
        encoder=encoder,
        on_segment_ready=collected["segments"].append,
        on_finished=collected["finished"].append
    )


def test_150_seconds_at_60_second_segments(segmenter, device, collected):
    segmenter.start(60)
    device.feed(150)
    count = segmenter.stop()

    segments = collected["segments"]
    assert count == 3
    assert [s.index for s in segments] == [0, 1, 2]
    assert [s.duration_seconds for s in segments] == [60.0, 60.0, 30.0]
    assert collected["finished"] == [3]
    assert not device.is_open


def test_partition_invariant_with_straddling_blocks(segmenter, device, encoder, collected):
    """Blocks of 0.7s never line up with the 60s boundary; nothing may be dropped or duplicated."""
    segmenter.start(60)
    device.feed(200.9, block_seconds=0.7)
    segmenter.stop()

    segments = collected["segments"]
    assert sum(s.duration_seconds for s in segments) == pytest.approx(segmenter.elapsed_seconds)
    assert segmenter.elapsed_seconds == pytest.approx(200.9)
    assert all(s.duration_seconds == 60.0 for s in segments[:-1])

    # Every captured frame ends up in exactly one segment's audio (4 bytes per float32 frame)
    total_frames = int(round(200.9 * device.sample_rate))
    assert sum(len(s.audio) for s in segments) == total_frames * 4


def test_indices_are_contiguous_and_recording_is_shared(segmenter, device, collected):
    segmenter.start(60)
    device.feed(400, block_seconds=3.3)
    segmenter.stop()

    segments = collected["segments"]
    assert [s.index for s in segments] == list(range(len(segments)))
    assert {s.recording_id for s in segments} == {segmenter.recording_id}
    assert all(s.extension == ".raw" for s in segments)


def test_stop_on_boundary_emits_no_empty_segment(segmenter, device, collected):
    segmenter.start(60)
    device.feed(120)

    assert segmenter.stop() == 2
    assert [s.duration_seconds for s in collected["segments"]] == [60.0, 60.0]


def test_stop_before_any_audio_emits_nothing(segmenter, collected):
    segmenter.start(60)

    assert segmenter.stop() == 0
    assert collected["segments"] == []
    assert collected["finished"] == [0]


def test_live_timer(segmenter, device):
    segmenter.start(60)
    device.feed(75)

    assert segmenter.elapsed_seconds == pytest.approx(75)
    assert segmenter.current_segment_seconds == pytest.approx(15)


@pytest.mark.parametrize("seconds", [30, 59, 901, 3600])
def test_segment_length_outside_bounds_is_rejected(segmenter, device, seconds):
    with pytest.raises(ValueError):
        segmenter.start(seconds)
    assert not device.is_open


def test_segment_length_is_fixed_once_started(segmenter, device):
    segmenter.start(60)

    with pytest.raises(InvalidStateTransition):
        segmenter.start(120)
    assert segmenter.target_segment_seconds == 60


def test_device_unavailable_leaves_segmenter_stopped(unavailable_device, encoder, collected):
    segmenter = Segmenter(unavailable_device, encoder, collected["segments"].append)

    with pytest.raises(DeviceUnavailable):
        segmenter.start(60)
    assert not segmenter.is_running
    assert segmenter.stop() == 0


def test_stop_is_idempotent(segmenter, device, collected):
    segmenter.start(60)
    device.feed(90)

    assert segmenter.stop() == 2
    assert segmenter.stop() == 2
    assert collected["finished"] == [2]


def test_frames_after_stop_are_ignored(segmenter, device, collected):
    segmenter.start(60)
    device.feed(30)
    segmenter.stop()

    device.feed(30)

    assert segmenter.elapsed_seconds == pytest.approx(30)
    assert len(collected["segments"]) == 1


def test_failed_hand_off_keeps_capturing(device, encoder):
    received = []

    def flaky(segment):
        received.append(segment.index)
        if segment.index == 0:
            raise RuntimeError("queue full")

    segmenter = Segmenter(device, encoder, flaky)
    segmenter.start(60)
    device.feed(150)
    segmenter.stop()

    assert received == [0, 1, 2]


def test_failing_close_still_flushes_and_finishes(failing_close_device, encoder, collected):
    segmenter = Segmenter(
        failing_close_device, encoder, collected["segments"].append, on_finished=collected["finished"].append
    )
    segmenter.start(60)
    failing_close_device.feed(90)

    with pytest.raises(RuntimeError):
        segmenter.stop()

    assert [s.duration_seconds for s in collected["segments"]] == [60.0, 30.0]
    assert collected["finished"] == [2]
    assert not segmenter.is_running
