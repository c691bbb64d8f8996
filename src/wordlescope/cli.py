"""
Command-line interface for the terminal spectrum grid.

Usage:
    wordlescope <device> [options]
    wordlescope --file <audio_file> [options]
    wordlescope --list-devices
"""

import argparse
import logging
import sys
from pathlib import Path

from wordlescope.config import VisualizerConfig


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wordlescope",
        description="Render live audio as a 6x5 grid of colored squares",
    )

    parser.add_argument(
        "source",
        nargs="?",
        default=None,
        help="Input device name or index (see --list-devices), or an audio file with --file",
    )
    parser.add_argument(
        "--file",
        action="store_true",
        help="Treat SOURCE as an audio file instead of a capture device",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="With --file, pace windows at capture speed",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List input devices and exit",
    )

    # Pipeline
    parser.add_argument("--config", type=Path, default=None, help="JSON config file")
    parser.add_argument("-r", "--sample-rate", type=int, default=None, help="Sample rate (default: 44100)")
    parser.add_argument("-n", "--window-size", type=int, default=None, help="Samples per window (default: 1024)")
    parser.add_argument("-d", "--duration", type=float, default=None, help="Capture length in seconds (default: 10)")
    parser.add_argument("--decay", type=float, default=None, help="Smoothing decay in (0, 1) (default: 0.9)")
    parser.add_argument("--scaling", type=float, default=None, help="Frequency scaling in (0, 1] (default: 0.5)")
    parser.add_argument(
        "--thresholds", type=float, nargs=2, default=None, metavar=("LOW", "HIGH"),
        help="Amplitude brackets (default: 0.5 1.0)",
    )

    # Output
    parser.add_argument("--ascii", action="store_true", help="Use ASCII symbols instead of emoji")
    parser.add_argument("--show-bins", action="store_true", help="Print the column frequency map first")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")

    return parser


def _configure_logging(verbose: bool, quiet: bool):
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if quiet:
        level = logging.ERROR
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_config(args: argparse.Namespace) -> VisualizerConfig:
    base = VisualizerConfig.from_json(args.config) if args.config else VisualizerConfig()
    return base.merged({
        "sample_rate": args.sample_rate,
        "window_size": args.window_size,
        "duration": args.duration,
        "decay": args.decay,
        "freq_scaling": args.scaling,
        "thresholds": tuple(args.thresholds) if args.thresholds else None,
    })


def _print_devices():
    from wordlescope.io.source import list_devices

    devices = list_devices()
    if not devices:
        print("No input devices found")
        return
    for dev in devices:
        print(
            f"{dev['index']:3d}  {dev['name']}  "
            f"({dev['channels']} ch, {dev['default_samplerate']:.0f} Hz)"
        )


def _print_bins(loop):
    print("Column  Bin  Frequency")
    for col, (idx, hz) in enumerate(zip(loop.bin_map.indices, loop.bin_map.frequencies())):
        print(f"{col:6d}  {idx:3d}  {hz:8.1f} Hz")


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose, args.quiet)

    from wordlescope.io.display import ASCII_PALETTE, EMOJI_PALETTE, TerminalRenderer
    from wordlescope.io.source import (
        AudioSourceError,
        DeviceSource,
        FileSource,
        SourceOpenError,
    )
    from wordlescope.pipeline import CaptureLoop

    if args.list_devices:
        try:
            _print_devices()
        except (OSError, AudioSourceError) as e:
            print(f"Error: Could not query audio devices: {e}", file=sys.stderr)
            return 1
        return 0

    if args.source is None:
        parser.error("the following arguments are required: source")
    if args.realtime and not args.file:
        parser.error("--realtime requires --file")

    try:
        config = _load_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    if args.file:
        source = FileSource(args.source, config, realtime=args.realtime)
    else:
        source = DeviceSource(args.source, config)

    renderer = TerminalRenderer(
        config,
        palette=ASCII_PALETTE if args.ascii else EMOJI_PALETTE,
    )
    loop = CaptureLoop(config, source, renderer)

    if args.show_bins:
        _print_bins(loop)

    try:
        result = loop.run()
    except (SourceOpenError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    finally:
        renderer.close()

    if not result.ok:
        print(
            f"Error: {result.error} "
            f"(stopped after {result.cycles_completed}/{result.cycles_requested} cycles)",
            file=sys.stderr,
        )
        return 1

    if not args.quiet:
        print(f"Done: {result.cycles_completed} cycles")
    return 0


if __name__ == "__main__":
    sys.exit(main())
