"""
CLI Adapter - Command-line interface.

Thin wrapper over Source + Mixture.

Usage:
    binaural-mixer mix speech.wav -i babble.wav --interferer-azimuth 60 \\
        --tir -5 --hrtfs kemar.sofa -o out/mix.wav
    binaural-mixer info speech.wav
"""

from __future__ import annotations

import argparse
import logging
import sys


def main(args: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="binaural-mixer",
        description="Render binaural target/interferer mixtures",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # mix command
    mix_parser = subparsers.add_parser("mix", help="Render a mixture to audio files")
    mix_parser.add_argument("target", help="Target audio file")
    mix_parser.add_argument("-i", "--interferer", action="append", default=[], help="Interferer audio file (repeatable)")
    mix_parser.add_argument("--target-azimuth", type=float, default=0.0, help="Target azimuth in degrees")
    mix_parser.add_argument("--target-elevation", type=float, default=0.0, help="Target elevation in degrees")
    mix_parser.add_argument(
        "--interferer-azimuth", type=float, action="append", default=[],
        help="Azimuth of each interferer, in order (default: 0)",
    )
    mix_parser.add_argument(
        "--interferer-elevation", type=float, action="append", default=[],
        help="Elevation of each interferer, in order (default: 0)",
    )
    mix_parser.add_argument("--precomposed", action="store_true", help="Treat interferers as already spatial")
    mix_parser.add_argument("--tir", type=float, default=0.0, help="Target-to-interferer ratio in dB")
    mix_parser.add_argument("--hrtfs", help="SOFA file with HRTFs")
    mix_parser.add_argument("--fs", type=float, help="Sample rate of the mixture")
    mix_parser.add_argument("-o", "--output", required=True, help="Output mixture filename")
    mix_parser.add_argument("--play", action="store_true", help="Play the mixture after rendering")

    # info command
    info_parser = subparsers.add_parser("info", help="Show audio file metadata")
    info_parser.add_argument("path", help="Audio file")

    # version command
    subparsers.add_parser("version", help="Show version")

    parsed = parser.parse_args(args)

    if parsed.verbose:
        logging.basicConfig(
            level=logging.DEBUG if parsed.verbose > 1 else logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
        )

    if parsed.command is None:
        parser.print_help()
        return 0

    if parsed.command == "version":
        from binaural_mixer import __version__
        print(f"binaural-mixer {__version__}")
        return 0

    if parsed.command == "info":
        return _cmd_info(parsed)

    if parsed.command == "mix":
        return _cmd_mix(parsed)

    return 1


def _cmd_mix(args: argparse.Namespace) -> int:
    """Handle mix command."""
    from binaural_mixer import Mixture, Source, MixerError

    def _nth(values: list[float], n: int) -> float:
        return values[n] if n < len(values) else 0.0

    try:
        target = Source(
            args.target,
            azimuth=args.target_azimuth,
            elevation=args.target_elevation,
        )
        interferers = [
            Source(
                path,
                azimuth=_nth(args.interferer_azimuth, n),
                elevation=_nth(args.interferer_elevation, n),
                precomposed=args.precomposed,
            )
            for n, path in enumerate(args.interferer)
        ]
        mixture = Mixture(
            target,
            interferers,
            filename=args.output,
            fs=args.fs,
            hrtfs=args.hrtfs,
            tir=args.tir,
        )
        mixture.write()
    except MixerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Mixture saved to: {mixture.filename}")
    print(f"Target: {mixture.filename_t}")
    print(f"Interferer: {mixture.filename_i}")
    print(f"Sample rate: {mixture.fs}Hz, TIR: {mixture.tir}dB, azimuthal separation: {mixture.azi_sep}")

    if args.play:
        _play(mixture)

    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle info command."""
    from binaural_mixer import MixerError
    from binaural_mixer.formats import asset

    try:
        meta = asset.info(args.path)
    except MixerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"{meta.path}: {meta.channels} ch, {meta.sample_rate}Hz, {meta.duration:.2f}s, {meta.subtype}")
    return 0


def _play(mixture) -> None:
    """Play the mixture (best effort)."""
    try:
        mixture.sound()
    except ImportError:
        print("(Install sounddevice to enable playback)")
    except Exception as e:
        print(f"(Playback failed: {e})")


if __name__ == "__main__":
    sys.exit(main())
