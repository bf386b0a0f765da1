"""CLI for social output generation.

Reads <job>/output/manifest.json from the base pipeline and writes one
composite, caption and manifest per platform under <job>/output/social/.

Usage:
    # One or more platforms
    workshot path/to/job --platform nextdoor --platform facebook

    # Every registered platform
    workshot path/to/job --all

    # List platforms and exit
    workshot --list-platforms

Environment (or a .env file in the working directory or above):
GEMINI_API_KEY enables smart crop, WORKSHOT_SOCIAL_GIF=1
enables the crossfade GIF, WORKSHOT_LOGO_PATH overrides the logo.
"""

import argparse
import logging
import sys
import time

from .config import load_config, load_env_file
from .platforms import available_platforms, get_platform
from .social import run_social


def _print_platforms():
    for name in available_platforms():
        spec = get_platform(name)
        print(
            f"  {name:<12} {spec.image.width}x{spec.image.height} "
            f"{spec.image.format} {spec.layout}"
        )


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="workshot",
        description="Render platform-specific before/after social outputs for a job.",
    )
    parser.add_argument(
        "job_dir", nargs="?",
        help="Job folder whose base pipeline run has finished",
    )
    parser.add_argument(
        "--platform", action="append", dest="platforms", default=[],
        help="Platform to render (repeatable)",
    )
    parser.add_argument(
        "--all", action="store_true",
        help="Render every registered platform",
    )
    parser.add_argument(
        "--list-platforms", action="store_true",
        help="List registered platforms and exit",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log fallback and progress details",
    )
    args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.list_platforms:
        print("Available platforms:")
        _print_platforms()
        return

    if not args.job_dir:
        parser.error("job_dir is required (unless using --list-platforms)")

    if args.all and args.platforms:
        parser.error("--platform and --all are mutually exclusive")

    platforms = available_platforms() if args.all else args.platforms
    if not platforms:
        parser.error("choose at least one --platform, or --all")

    load_env_file()
    config = load_config()
    print(f"Rendering {len(platforms)} platform(s) for {args.job_dir}")
    print(f"  Smart crop: {'on' if config.gemini_api_key else 'off'}")
    print(f"  Transition: {'on' if config.transition_enabled else 'off'}\n")

    t0 = time.monotonic()
    try:
        outputs = run_social(args.job_dir, platforms, config=config)
    except (ValueError, FileNotFoundError) as err:
        print(f"Error: {err}", file=sys.stderr)
        sys.exit(1)

    for out in outputs:
        print(f"  DONE   {out.platform:<12} {out.image_width}x{out.image_height}  {out.image_path}")
        print(f"         caption  {out.caption_length} chars  {out.caption_path}")
        if out.transition is not None:
            t = out.transition
            print(f"         transition  {t.frame_count} frames, {t.duration_ms}ms  {t.path}")

    elapsed = time.monotonic() - t0
    failed = [p for p in platforms if p not in {o.platform for o in outputs}]
    print(f"\nDone: {len(outputs)}/{len(platforms)} platform(s) in {elapsed:.1f}s")
    if failed:
        print(f"Failed: {', '.join(failed)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
