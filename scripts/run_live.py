"""CLI script: colour a guitar fretboard by how much each note would clash
with what the microphone hears.

Usage:
    # Default input device, 4096-sample windows:
    python scripts/run_live.py

    # Lower latency: drop stale audio, smaller windows, 2x zero-padding:
    python scripts/run_live.py --resolution 2048 --discard --zpadding 2

    # Pick a device and use Romance note names:
    python scripts/run_live.py --list-devices
    python scripts/run_live.py --device 3 --notation romance

    # Expose Prometheus metrics at http://localhost:9100/metrics:
    python scripts/run_live.py --metrics-port 9100

Output:
    A fretboard redrawn in place in the terminal, until Enter is pressed.
"""

from __future__ import annotations

import argparse
import logging
import queue
import sys
import threading
from pathlib import Path

# Allow running from the repo root without installing the package.
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import BufferOptions, ModelOptions, ScoringOptions  # noqa: E402
from display.notation import Notation  # noqa: E402
from display.terminal import DisplayOptions, run_display  # noqa: E402
from infrastructure import metrics  # noqa: E402
from ingestion.audio_buffer import AudioBuffer  # noqa: E402
from ingestion.capture import MicrophoneCapture, list_devices  # noqa: E402
from ingestion.pipeline import AnalysisWorker  # noqa: E402

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Show live per-note dissonance against microphone input."
    )
    parser.add_argument(
        "--resolution",
        type=int,
        default=4096,
        metavar="N",
        help="Samples per analysis window (powers of two are fastest).",
    )
    parser.add_argument(
        "--discard",
        action="store_true",
        default=False,
        help="Drop stale audio when analysis falls behind.",
    )
    parser.add_argument(
        "--overlap",
        action="store_true",
        default=False,
        help="Reuse buffered samples so consecutive windows overlap.",
    )
    parser.add_argument(
        "--zpadding",
        type=int,
        default=1,
        metavar="Z",
        help="Zero-padding factor applied before the FFT.",
    )
    parser.add_argument(
        "--halflife",
        type=float,
        default=0.5,
        metavar="SECONDS",
        help="Time for a dissonance score to lose half its weight.",
    )
    parser.add_argument(
        "--harmonics",
        type=int,
        default=30,
        metavar="H",
        help="Harmonics per side of the synthetic instrument.",
    )
    parser.add_argument(
        "--samplerate",
        type=int,
        default=None,
        metavar="HZ",
        help="Capture sampling rate (device default when omitted).",
    )
    parser.add_argument(
        "--device",
        default=None,
        help="Input device index or name (see --list-devices).",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        default=False,
        help="Print the available audio devices and exit.",
    )
    parser.add_argument(
        "--notation",
        choices=[n.value for n in Notation],
        default=Notation.ENGLISH.value,
        help="Note naming scheme.",
    )
    parser.add_argument(
        "--no-clear",
        action="store_true",
        default=False,
        help="Scroll frames instead of redrawing in place.",
    )
    parser.add_argument(
        "--no-mask",
        action="store_true",
        default=False,
        help="Do not subtract the first window as a noise profile.",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        metavar="PORT",
        help="Serve Prometheus metrics on this port (disabled when omitted).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser.parse_args(argv)


def _device(value: str | None) -> int | str | None:
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def build_options(
    args: argparse.Namespace,
    sampling_rate: int,
) -> tuple[BufferOptions, ScoringOptions, ModelOptions, DisplayOptions]:
    """Map parsed arguments onto the configuration dataclasses.

    Raises:
        ValueError: If any value is rejected by the config validation.
    """
    buffer_options = BufferOptions(
        resolution=args.resolution,
        discard=args.discard,
        overlap=args.overlap,
    )
    scoring = ScoringOptions(
        sampling_rate=sampling_rate,
        zpadding=args.zpadding,
        halflife=args.halflife,
        noise_mask=not args.no_mask,
    )
    model = ModelOptions(harmonic_count=args.harmonics)
    display = DisplayOptions(notation=Notation(args.notation), clear_term=not args.no_clear)
    return buffer_options, scoring, model, display


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s: %(message)s")

    if args.list_devices:
        print(list_devices())
        return 0

    chunks: queue.Queue = queue.Queue()
    snapshots: queue.Queue = queue.Queue()
    capture = MicrophoneCapture(chunks, samplerate=args.samplerate, device=_device(args.device))

    try:
        buffer_options, scoring, model, display = build_options(args, capture.samplerate)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    if args.metrics_port is not None:
        try:
            metrics.start_metrics_server(args.metrics_port)
        except (ValueError, OSError) as exc:
            logger.error("Cannot serve metrics: %s", exc)
            return 2

    worker = AnalysisWorker(AudioBuffer(chunks, buffer_options), snapshots, scoring, model)

    print("Press enter/return to start reading frequencies ...")
    sys.stdin.readline()

    with capture:
        worker.start()
        print("Press enter/return to quit ...")
        # Display runs on its own thread so the main thread can wait for Enter
        display_thread = threading.Thread(
            target=run_display, args=(snapshots, display), name="display", daemon=True
        )
        display_thread.start()
        sys.stdin.readline()

    worker.join(timeout=5.0)
    display_thread.join(timeout=5.0)
    if worker.error is not None:
        logger.error("Analysis failed: %s", worker.error)
        return 1
    logger.info("Analysed %d frames", worker.frames)
    return 0


if __name__ == "__main__":
    sys.exit(main())
