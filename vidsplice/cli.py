"""Thin CLI entry point — builds a Manifest and calls the engine."""

import argparse
import subprocess
import sys
from pathlib import Path

from vidsplice.engine import process
from vidsplice.errors import VidspliceError
from vidsplice.logging_config import configure_logging
from vidsplice.manifest import Manifest, load_manifest
from vidsplice.models import DEFAULT_RESOLUTION, RESOLUTIONS, JobKind, JobSnapshot, JobState


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vidsplice",
        description="vidsplice — stitch a clip into another, or compress a video.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-dir", type=Path, help="Also write logs to this directory")
    sub = parser.add_subparsers(dest="command")

    comp = sub.add_parser("compress", help="Re-encode a video at a preset quality/resolution")
    comp.add_argument("video", type=Path, help="Input video file")
    comp.add_argument("--quality", "-q", choices=["high", "medium", "low"], default="low",
                      help="Quality preset (high=CRF 28, medium=30, low=32)")
    comp.add_argument("--resolution", "-r", choices=list(RESOLUTIONS), default=DEFAULT_RESOLUTION,
                      help="Output size, WIDTHxHEIGHT")
    comp.add_argument("--output", "-o", type=Path, help="Output file path")

    st = sub.add_parser("stitch", help="Insert TARGET into BASE at a timestamp")
    st.add_argument("base", type=Path, help="Base video file")
    st.add_argument("target", type=Path, help="Clip to insert")
    at = st.add_mutually_exclusive_group(required=True)
    at.add_argument("--at", type=str, help="Cut point: seconds (62.5) or M:S:CC (1:2:50)")
    at.add_argument("--position", type=float, help="Cut point as 0-100 of the base duration")
    st.add_argument("--output", "-o", type=Path, help="Output file path")

    run = sub.add_parser("run", help="Run a job described by a JSON manifest")
    run.add_argument("--manifest", "-m", type=Path, required=True, help="Path to a JSON manifest file")

    serve = sub.add_parser("serve", help="Launch the web UI")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    return parser


def manifest_from_args(args: argparse.Namespace) -> Manifest:
    if args.command == "run":
        return load_manifest(args.manifest)
    if args.command == "compress":
        return Manifest(
            kind=JobKind.COMPRESS,
            base=args.video,
            output=args.output,
            quality=args.quality,
            resolution=args.resolution,
        )
    return Manifest(
        kind=JobKind.STITCH,
        base=args.base,
        target=args.target,
        output=args.output,
        cut_timestamp=args.at,
        cut_position=args.position,
    )


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    configure_logging(f"vidsplice-{args.command}", log_dir=args.log_dir, verbose=args.verbose)

    if args.command == "serve":
        from vidsplice.web import create_app
        app = create_app()
        print(f"vidsplice web UI: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    def on_progress(snap: JobSnapshot) -> None:
        if snap.state == JobState.RUNNING and snap.step_count:
            print(
                f"  [{snap.percent:3d}%] step {snap.step_index + 1}/{snap.step_count}"
                f" — {snap.eta_display} left"
            )

    try:
        m = manifest_from_args(args)
        result = process(m, on_progress=on_progress)
    except (VidspliceError, ValueError, OSError, subprocess.CalledProcessError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Duration: {result.duration_original:.1f}s -> {result.duration_final:.1f}s")
    print(f"  Size: {result.size / (1024 * 1024):.1f} MiB")


if __name__ == "__main__":
    main()
