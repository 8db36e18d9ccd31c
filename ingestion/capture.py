"""
ingestion/capture.py — Audio device boundary.

The ONLY module that talks to the sound card. It pushes mono float32 chunks
into a queue and closes that queue with END_OF_STREAM when capture stops;
everything downstream (AudioBuffer, analysis) only sees the queue.

sounddevice is imported lazily, or injected, so the rest of the package and
the test suite run on machines without PortAudio.

Usage:
    chunks = queue.Queue()
    with MicrophoneCapture(chunks, samplerate=48000):
        worker.join()
"""

from __future__ import annotations

import logging
import queue
from typing import Any

import numpy as np

from ingestion.audio_buffer import END_OF_STREAM

logger = logging.getLogger(__name__)


def _sounddevice(module: Any = None) -> Any:
    if module is not None:
        return module
    import sounddevice  # deferred to allow running without an audio backend

    return sounddevice


def list_devices(sd: Any = None) -> Any:
    """Devices known to PortAudio (printable table)."""
    return _sounddevice(sd).query_devices()


def default_samplerate(device: int | str | None = None, sd: Any = None) -> int:
    """Default sampling rate of an input device, in Hz."""
    info = _sounddevice(sd).query_devices(device, kind="input")
    return int(info["default_samplerate"])


def feed_array(samples: np.ndarray, output: queue.Queue, chunk_size: int = 1024) -> int:
    """Push an in-memory signal into ``output`` in chunks, then close it.

    Args:
        samples:    1-D signal in [-1, 1].
        output:     Chunk queue consumed by an AudioBuffer.
        chunk_size: Samples per chunk; the last chunk may be shorter.

    Returns:
        Number of chunks pushed.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    signal = np.asarray(samples, dtype=np.float32).reshape(-1)
    count = 0
    for start in range(0, signal.size, chunk_size):
        output.put(signal[start : start + chunk_size].copy())
        count += 1
    output.put(END_OF_STREAM)
    return count


class MicrophoneCapture:
    """Streams the default (or a chosen) input device into a chunk queue.

    Args:
        output:     Queue receiving float32 chunks, closed on stop().
        samplerate: Hz; the device default when None.
        device:     sounddevice device index or name; system default when None.
        blocksize:  Frames per callback; 0 lets PortAudio choose.
        sd:         sounddevice module override (tests).

    Example:
        with MicrophoneCapture(chunks) as capture:
            print(capture.samplerate)
    """

    def __init__(
        self,
        output: queue.Queue,
        samplerate: int | None = None,
        device: int | str | None = None,
        blocksize: int = 0,
        sd: Any = None,
    ) -> None:
        self._output = output
        self._sd = _sounddevice(sd)
        self.device = device
        self.samplerate = samplerate or default_samplerate(device, self._sd)
        self.blocksize = blocksize
        self._stream: Any = None

    def _callback(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.warning("Input stream status: %s", status)
        # indata is reused by PortAudio after the callback returns
        self._output.put(np.array(indata[:, 0], dtype=np.float32, copy=True))

    def start(self) -> None:
        if self._stream is not None:
            return
        self._stream = self._sd.InputStream(
            samplerate=self.samplerate,
            device=self.device,
            channels=1,
            dtype="float32",
            blocksize=self.blocksize,
            callback=self._callback,
        )
        self._stream.start()
        logger.info("Capturing from device %s at %d Hz", self.device or "default", self.samplerate)

    def stop(self) -> None:
        """Stop the stream and close the output queue."""
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            self._stream = None
            self._output.put(END_OF_STREAM)
            logger.info("Capture stopped")

    def __enter__(self) -> MicrophoneCapture:
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.stop()
