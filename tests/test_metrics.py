import pytest

from packager.performance.memory_probe import MemorySample
from packager.performance.metrics import (
    MetricsAggregator,
    SampleRecorder,
    memory_trend,
)


def _samples(*resident):
    return tuple(MemorySample(i, value, 0, 0, 0, f"s{i}") for i, value in enumerate(resident))


def test_peak_and_average_follow_samples():
    samples = _samples(100, 400, 250, 50)

    metrics = MetricsAggregator().aggregate(1000, 4, samples, started_millis=10, finished_millis=35)

    assert metrics.peak_resident_bytes == max(s.resident_bytes for s in samples)
    assert metrics.average_resident_bytes == pytest.approx(200.0)
    assert metrics.peak_resident_bytes >= metrics.average_resident_bytes >= 0
    assert metrics.duration_millis == 25
    assert metrics.samples == samples
    assert metrics.compression_ratio is None


def test_compression_ratio_is_input_over_output():
    metrics = MetricsAggregator().aggregate(2000, 2, _samples(1), 0, 0, output_size_bytes=500)
    assert metrics.compression_ratio == 4.0


def test_zero_output_size_leaves_ratio_undefined():
    metrics = MetricsAggregator().aggregate(2000, 2, (), 0, 0, output_size_bytes=0)
    assert metrics.compression_ratio is None


def test_no_samples_yield_zero_memory_stats():
    metrics = MetricsAggregator().aggregate(10, 1, (), 5, 5)

    assert metrics.samples == ()
    assert metrics.peak_resident_bytes == 0
    assert metrics.average_resident_bytes == 0.0


def test_metrics_are_immutable():
    metrics = MetricsAggregator().aggregate(10, 1, (), 0, 1)
    with pytest.raises(AttributeError):
        metrics.chunk_count = 2


def test_ceiling_breaches_are_carried_into_the_report():
    metrics = MetricsAggregator().aggregate(10, 1, _samples(100, 300), 0, 1, ceiling_breaches=1)

    assert metrics.ceiling_breaches == 1
    assert metrics.to_dict()["ceiling_breaches"] == 1
    assert MetricsAggregator().aggregate(10, 1, (), 0, 1).ceiling_breaches == 0


def test_recorder_keeps_timestamps_non_decreasing():
    recorder = SampleRecorder()
    recorder.record(MemorySample(100, 1, 0, 0, 0, "a"))
    recorder.record(MemorySample(90, 2, 0, 0, 0, "b"))
    recorder.record(MemorySample(120, 3, 0, 0, 0, "c"))

    timestamps = [s.timestamp_millis for s in recorder.snapshot()]
    assert timestamps == [100, 100, 120]
    assert [s.label for s in recorder.snapshot()] == ["a", "b", "c"]


def test_disabled_recorder_drops_samples():
    recorder = SampleRecorder(enabled=False)
    assert recorder.record(MemorySample(1, 1, 0, 0, 0, "a")) is None
    assert len(recorder) == 0


def test_snapshot_survives_clear():
    recorder = SampleRecorder()
    recorder.record(MemorySample(1, 1, 0, 0, 0, "a"))
    snapshot = recorder.snapshot()

    recorder.clear()

    assert len(recorder) == 0
    assert len(snapshot) == 1


@pytest.mark.parametrize("resident, expected", [
    ((100,), "stable"),
    ((100, 105), "stable"),
    ((100, 150), "increasing"),
    ((100, 50), "decreasing"),
])
def test_memory_trend(resident, expected):
    assert memory_trend(_samples(*resident)) == expected


def test_memory_report_summarizes_metrics():
    aggregator = MetricsAggregator()
    metrics = aggregator.aggregate(10, 1, _samples(100, 300), 0, 1)

    report = aggregator.memory_report(metrics)

    assert report.peak == 300
    assert report.average == 200.0
    assert report.trend == "increasing"
    assert report.sample_count == 2
    assert metrics.to_dict()["memory_trend"] == "increasing"
