"""
Tests for ingestion/pipeline.py — the analysis task end to end.

Audio comes from feed_array() (in-memory signal), so the whole
capture → buffer → analysis → snapshot queue path runs without a device.
"""

from __future__ import annotations

import queue
from unittest.mock import MagicMock

import numpy as np
import pytest

from conftest import RESOLUTION, SAMPLING_RATE, sine
from core.config import BufferOptions, ModelOptions, ScoringOptions
from core.spectrum.dissonance import DissonanceModel
from core.spectrum.notes import NOTE_COUNT
from core.spectrum.types import Scores
from infrastructure import metrics
from ingestion.audio_buffer import END_OF_STREAM, AudioBuffer
from ingestion.capture import feed_array
from ingestion.pipeline import AnalysisWorker, latest_snapshot, run_analysis


def _buffer(signal: np.ndarray, chunk_size: int = 300) -> AudioBuffer:
    chunks: queue.Queue = queue.Queue()
    feed_array(signal, chunks, chunk_size=chunk_size)
    return AudioBuffer(chunks, BufferOptions(resolution=RESOLUTION))


def _collect(snapshots: queue.Queue) -> list:
    items = []
    while True:
        item = snapshots.get_nowait()
        items.append(item)
        if item is END_OF_STREAM:
            return items


class TestRunAnalysis:
    """Test the analysis loop."""

    def test_one_snapshot_per_window_after_profile(
        self, small_model: DissonanceModel, scoring: ScoringOptions
    ) -> None:
        signal = sine(440.0, length=RESOLUTION * 4)
        snapshots: queue.Queue = queue.Queue()
        frames = run_analysis(_buffer(signal), snapshots, scoring, model=small_model)

        items = _collect(snapshots)
        assert frames == 3
        assert len(items) == 4
        assert items[-1] is END_OF_STREAM
        for scores in items[:-1]:
            assert isinstance(scores, Scores)
            assert scores.note_scores.shape == (NOTE_COUNT,)
            assert float(scores.note_scores.min()) >= 0.0
            assert float(scores.note_scores.max()) <= 1.0

    def test_empty_source_closes_output(self, small_model: DissonanceModel) -> None:
        snapshots: queue.Queue = queue.Queue()
        frames = run_analysis(_buffer(np.zeros(10, dtype=np.float32)), snapshots, model=small_model)
        assert frames == 0
        assert snapshots.get_nowait() is END_OF_STREAM

    def test_noise_mask_cancels_steady_noise(self, small_model: DissonanceModel) -> None:
        hum = sine(2000.0, length=RESOLUTION * 3)
        options = ScoringOptions(sampling_rate=SAMPLING_RATE, noise_mask=True)
        snapshots: queue.Queue = queue.Queue()
        run_analysis(_buffer(hum, chunk_size=RESOLUTION), snapshots, options, model=small_model)

        items = _collect(snapshots)[:-1]
        assert items
        # 2000 Hz completes whole cycles per window and its gain is above 1, so
        # the weighted profile exceeds the raw power of every later window
        # (unmasked it carries ~7e4)
        for scores in items:
            assert scores.fourier.total_intensity < 1.0

    def test_without_mask_keeps_energy(self, small_model: DissonanceModel, scoring: ScoringOptions) -> None:
        hum = sine(1000.0, length=RESOLUTION * 3)
        snapshots: queue.Queue = queue.Queue()
        run_analysis(_buffer(hum, chunk_size=RESOLUTION), snapshots, scoring, model=small_model)
        items = _collect(snapshots)[:-1]
        assert all(scores.fourier.total_intensity > 0.0 for scores in items)

    def test_records_frame_metrics(self, small_model: DissonanceModel, scoring: ScoringOptions) -> None:
        before = metrics.frames_total._value.get()
        run_analysis(_buffer(sine(440.0, length=RESOLUTION * 3)), queue.Queue(), scoring, model=small_model)
        assert metrics.frames_total._value.get() == before + 2

    def test_output_closed_on_error(self, scoring: ScoringOptions) -> None:
        model = MagicMock(spec=DissonanceModel)
        model.build_table.side_effect = RuntimeError("boom")
        snapshots: queue.Queue = queue.Queue()
        with pytest.raises(RuntimeError, match="boom"):
            run_analysis(_buffer(sine(440.0, length=RESOLUTION * 2)), snapshots, scoring, model=model)
        assert snapshots.get_nowait() is END_OF_STREAM

    def test_frames_in_temporal_order(self, small_model: DissonanceModel, scoring: ScoringOptions) -> None:
        silence = np.zeros(RESOLUTION * 2, dtype=np.float32)
        tone = sine(440.0, length=RESOLUTION)
        signal = np.concatenate([silence, tone])
        snapshots: queue.Queue = queue.Queue()
        run_analysis(_buffer(signal), snapshots, scoring, model=small_model)
        first, second = _collect(snapshots)[:-1]
        assert first.fourier.total_intensity == 0.0
        assert second.fourier.total_intensity > 0.0


class TestLatestSnapshot:
    """Test backlog skipping on the display side."""

    def _scores(self, marker: float) -> Scores:
        return Scores(
            note_scores=np.full(NOTE_COUNT, marker),
            note_values=np.zeros(NOTE_COUNT),
            fourier=MagicMock(),
        )

    def test_returns_newest(self) -> None:
        snapshots: queue.Queue = queue.Queue()
        for marker in (0.1, 0.2, 0.3):
            snapshots.put(self._scores(marker))
        newest = latest_snapshot(snapshots)
        assert newest is not None
        assert newest.note_scores[0] == pytest.approx(0.3)
        assert snapshots.empty()

    def test_counts_dropped(self) -> None:
        before = metrics.snapshots_dropped_total._value.get()
        snapshots: queue.Queue = queue.Queue()
        for marker in (0.1, 0.2, 0.3):
            snapshots.put(self._scores(marker))
        latest_snapshot(snapshots)
        assert metrics.snapshots_dropped_total._value.get() == before + 2

    def test_shows_last_frame_before_end(self) -> None:
        snapshots: queue.Queue = queue.Queue()
        snapshots.put(self._scores(0.1))
        snapshots.put(self._scores(0.9))
        snapshots.put(END_OF_STREAM)
        newest = latest_snapshot(snapshots)
        assert newest is not None
        assert newest.note_scores[0] == pytest.approx(0.9)
        assert latest_snapshot(snapshots) is None

    def test_end_of_stream_is_sticky(self) -> None:
        snapshots: queue.Queue = queue.Queue()
        snapshots.put(END_OF_STREAM)
        assert latest_snapshot(snapshots) is None
        assert latest_snapshot(snapshots) is None

    def test_non_blocking_empty(self) -> None:
        assert latest_snapshot(queue.Queue(), block=False) is None


class TestAnalysisWorker:
    """Test the background thread wrapper."""

    def test_runs_to_completion(self, scoring: ScoringOptions) -> None:
        snapshots: queue.Queue = queue.Queue()
        worker = AnalysisWorker(
            _buffer(sine(440.0, length=RESOLUTION * 3)),
            snapshots,
            scoring,
            ModelOptions(harmonic_count=2),
        )
        worker.start()
        worker.join(timeout=60.0)
        assert not worker.is_alive()
        assert worker.error is None
        assert worker.frames == 2
        assert _collect(snapshots)[-1] is END_OF_STREAM

    def test_error_is_stored(self, scoring: ScoringOptions) -> None:
        buffer = MagicMock(spec=AudioBuffer)
        buffer.take.side_effect = RuntimeError("device gone")
        snapshots: queue.Queue = queue.Queue()
        worker = AnalysisWorker(buffer, snapshots, scoring)
        worker.start()
        worker.join(timeout=10.0)
        assert isinstance(worker.error, RuntimeError)
        assert snapshots.get_nowait() is END_OF_STREAM
