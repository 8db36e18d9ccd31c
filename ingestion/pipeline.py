"""
ingestion/pipeline.py — The analysis task between capture and display.

    capture ──chunks──▶ AudioBuffer.take()
                             │
                             ▼
                     SpectralAnalyzer.analyze()      [core/spectrum/fourier.py]
                             │
                             ▼
                     ScoreCalculator.calculate()     [core/spectrum/scores.py]
                             │
                             ▼
                      output queue ──Scores──▶ display(s)

The first window is analysed without a mask and serves both as the static
noise profile (when ``noise_mask`` is on) and as the reference layout for
the dissonance table. Every later window is analysed, scored and pushed in
order. When the buffer reports exhaustion the task puts END_OF_STREAM into
its output queue and returns; that is the only shutdown path.

Usage:
    worker = AnalysisWorker(buffer, snapshots, scoring=ScoringOptions(sampling_rate=44100))
    worker.start()
    ...
    worker.join()
"""

from __future__ import annotations

import logging
import queue
import threading

from core.config import DEFAULT_MODEL, DEFAULT_SCORING, ModelOptions, ScoringOptions
from core.spectrum.dissonance import DissonanceModel
from core.spectrum.fourier import SpectralAnalyzer
from core.spectrum.scores import ScoreCalculator
from core.spectrum.types import Scores
from infrastructure import metrics
from ingestion.audio_buffer import END_OF_STREAM, AudioBuffer

logger = logging.getLogger(__name__)


def run_analysis(
    buffer: AudioBuffer,
    output: queue.Queue,
    scoring: ScoringOptions = DEFAULT_SCORING,
    model: DissonanceModel | None = None,
    model_options: ModelOptions = DEFAULT_MODEL,
) -> int:
    """Analyse windows from ``buffer`` until it is exhausted.

    Args:
        buffer:        Source of fixed-size windows.
        output:        Receives one Scores per analysed window, then END_OF_STREAM.
        scoring:       Analysis and smoothing options.
        model:         Prebuilt dissonance model; built from ``model_options`` if None.
        model_options: Used only when ``model`` is None.

    Returns:
        Number of Scores snapshots produced (the profiling window excluded).
    """
    frames = 0
    try:
        analyzer = SpectralAnalyzer(scoring)

        logger.info("Gathering noise profile")
        first = buffer.take()
        if first is None:
            logger.info("Audio source exhausted before the first window")
            return frames

        reference = analyzer.analyze(first)
        if scoring.noise_mask:
            analyzer.mask = reference
            logger.info("Noise mask captured over %d bins", len(reference))

        calculator = ScoreCalculator(model or DissonanceModel(model_options), reference, scoring)

        logger.info("Starting analysis")
        while (window := buffer.take()) is not None:
            with metrics.LatencyTimer() as timer:
                spectrum = analyzer.analyze(window)
                scores = calculator.calculate(spectrum)
            metrics.record_frame(latency_seconds=timer.elapsed)
            output.put(scores)
            frames += 1
    finally:
        output.put(END_OF_STREAM)

    logger.info("Analysis finished after %d frames", frames)
    return frames


def latest_snapshot(snapshots: queue.Queue, *, block: bool = True) -> Scores | None:
    """Return the newest snapshot waiting in ``snapshots``, skipping older ones.

    Args:
        snapshots: Queue filled by run_analysis().
        block:     Wait for a snapshot when the queue is empty.

    Returns:
        The newest Scores, or None at END_OF_STREAM (or when empty and
        ``block`` is False). END_OF_STREAM is put back so that later calls
        see it too.
    """
    try:
        newest = snapshots.get(block=block)
    except queue.Empty:
        return None

    dropped = 0
    while newest is not END_OF_STREAM:
        try:
            candidate = snapshots.get_nowait()
        except queue.Empty:
            break
        if candidate is END_OF_STREAM:
            # Keep the close signal for the next call; show the last frame first
            snapshots.put(END_OF_STREAM)
            break
        newest = candidate
        dropped += 1

    if dropped:
        metrics.record_snapshots_dropped(dropped)
    if newest is END_OF_STREAM:
        snapshots.put(END_OF_STREAM)
    return newest


class AnalysisWorker:
    """Runs run_analysis() on a daemon thread.

    Args:
        buffer:        Window source; owned by the worker thread from start().
        output:        Snapshot queue for the display side.
        scoring:       Analysis options.
        model_options: Dissonance model options.
    """

    def __init__(
        self,
        buffer: AudioBuffer,
        output: queue.Queue,
        scoring: ScoringOptions = DEFAULT_SCORING,
        model_options: ModelOptions = DEFAULT_MODEL,
    ) -> None:
        self._buffer = buffer
        self._output = output
        self._scoring = scoring
        self._model_options = model_options
        self.frames = 0
        self.error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, name="analysis", daemon=True)

    def _run(self) -> None:
        try:
            self.frames = run_analysis(
                self._buffer,
                self._output,
                self._scoring,
                model_options=self._model_options,
            )
        except Exception as exc:
            logger.exception("Analysis thread failed")
            self.error = exc

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()
