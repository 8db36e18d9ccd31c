"""
ingestion/audio_buffer.py — Reassemble irregular audio chunks into fixed windows.

The capture side pushes chunks of any (non-zero) length into a FIFO queue;
the analysis side calls AudioBuffer.take() and always receives exactly
``resolution`` samples, or None once the source is closed and exhausted.

Closing convention:
    The producer puts END_OF_STREAM (None) into the queue when it stops.
    After that, take() keeps returning windows while enough samples remain,
    then returns None on every call.

Usage:
    chunks: queue.Queue[np.ndarray | None] = queue.Queue()
    buffer = AudioBuffer(chunks, BufferOptions(resolution=4096))
    while (window := buffer.take()) is not None:
        ...
"""

from __future__ import annotations

import logging
import queue

import numpy as np

from core.config import DEFAULT_BUFFER, BufferOptions
from infrastructure import metrics

logger = logging.getLogger(__name__)

END_OF_STREAM = None
"""Sentinel a producer puts into a chunk or snapshot queue when it is done."""

ChunkQueue = queue.Queue
"""Queue of float32 sample chunks, closed by END_OF_STREAM."""


class AudioBuffer:
    """Owns the only mutable sample queue of the pipeline.

    Single consumer: take() must only be called from the analysis thread.

    Args:
        source:  Queue of sample chunks, closed with END_OF_STREAM.
        options: Window length and discard/overlap policy.
    """

    def __init__(self, source: ChunkQueue, options: BufferOptions = DEFAULT_BUFFER) -> None:
        self.options = options
        self._source = source
        self._buffer = np.zeros(0, dtype=np.float32)
        self._closed = False
        # Tail samples not yet returned in any window
        self._unseen = 0

    @property
    def buffered(self) -> int:
        """Samples currently held between calls."""
        return int(self._buffer.size)

    @property
    def closed(self) -> bool:
        """True once the producer has signalled END_OF_STREAM."""
        return self._closed

    def _extend(self, chunk: np.ndarray | None) -> None:
        if chunk is END_OF_STREAM:
            if not self._closed:
                logger.info("Audio source closed with %d samples buffered", self._buffer.size)
            self._closed = True
            return
        samples = np.asarray(chunk, dtype=np.float32).reshape(-1)
        if samples.size:
            self._buffer = np.concatenate((self._buffer, samples))
            self._unseen += samples.size

    def _drain_pending(self) -> None:
        """Move every chunk already waiting in the queue into the buffer."""
        while not self._closed:
            try:
                chunk = self._source.get_nowait()
            except queue.Empty:
                return
            self._extend(chunk)

    def take(self) -> np.ndarray | None:
        """Return the next window of ``resolution`` samples.

        Blocks while fewer than ``resolution`` samples are buffered and the
        source is still open.

        Returns:
            float32 array of exactly ``resolution`` samples, or None when
            the source is closed and no further window can be formed.
        """
        n = self.options.resolution

        self._drain_pending()
        while self._buffer.size < n and not self._closed:
            self._extend(self._source.get())

        if self._buffer.size < n:
            return None
        # Once closed, an overlapping window with nothing unseen would repeat forever
        if self.options.overlap and self._closed and self._unseen == 0:
            return None

        if self.options.discard and self._buffer.size > n:
            surplus = self._buffer.size - n
            self._buffer = self._buffer[surplus:]
            logger.debug("Discarded %d stale samples", surplus)
            metrics.record_samples_discarded(surplus)

        if self.options.overlap:
            window = self._buffer[:n].copy()
            # Everything past the window is still unseen
            self._unseen = self._buffer.size - n
            # Drop what the next window won't need, at most one window's worth
            surplus = min(self._buffer.size - n, n)
            self._buffer = self._buffer[surplus:]
            return window

        self._unseen = 0
        window = self._buffer[:n].copy()
        self._buffer = self._buffer[n:]
        return window
