"""Command-line entry point for the brand kit crawler."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, Sequence

from .analysis import analyze_image
from .config import DEFAULT_MAX_PAGES, CrawlConfig
from .jobs import JobRunner

logger = logging.getLogger("brandkit_crawler.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("crawl", *argv)


def _add_crawl_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="Website to crawl")
    parser.add_argument(
        "--max-pages",
        type=int,
        default=DEFAULT_MAX_PAGES,
        help="Maximum number of same-domain pages to visit",
    )
    parser.add_argument(
        "--output",
        default=None,
        type=Path,
        help="Directory where screenshots and images are stored (default: $BRANDKIT_OUTPUT_DIR or ./output)",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=1.5,
        help="Seconds to wait after DOM content loaded before extracting",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Number of concurrent image downloads",
    )
    parser.add_argument(
        "--no-download",
        action="store_true",
        help="Skip downloading, analyzing and storing images",
    )
    parser.add_argument(
        "--filter-blurry",
        action="store_true",
        help="Drop images classified as blurry from the report",
    )
    parser.add_argument(
        "--filter-no-description",
        action="store_true",
        help="Only report images with alt text, a title or a figcaption",
    )
    parser.add_argument(
        "--all-screenshots",
        action="store_true",
        help="Sample a screenshot palette on every page instead of only the first",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_analyze_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("paths", nargs="+", type=Path, help="Image files to analyze")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Crawl a website with Playwright, score its images and build a brand kit."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser(
        "crawl", help="Crawl a site and print a JSON brand kit report"
    )
    _add_crawl_arguments(crawl_parser)

    analyze_parser = subparsers.add_parser(
        "analyze", help="Report blur score and dominant colors for local images"
    )
    _add_analyze_arguments(analyze_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    # Logs go to stderr so stdout stays valid JSON.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )


def _write_json(data) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    sys.stdout.flush()


def _run_crawl(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    config = CrawlConfig.from_env(
        output_root=args.output.resolve() if args.output else None,
        wait_after_load=args.wait,
        navigation_timeout=args.timeout,
        max_pages=args.max_pages,
        image_workers=args.workers,
        screenshot_all_pages=args.all_screenshots,
    )
    runner = JobRunner(config)
    try:
        report = asyncio.run(
            runner.run(
                args.url,
                args.max_pages,
                download_images=not args.no_download,
                filter_blurry=args.filter_blurry,
                filter_no_description=args.filter_no_description,
            )
        )
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    logger.info(
        "Finished in %.2fs (%d pages, %d/%d images returned, %d errors)",
        report.duration_seconds,
        len(report.pages_visited),
        len(report.images),
        report.images_found,
        len(report.errors),
    )
    _write_json(report.to_dict())
    return 0 if report.job.status == "completed" else 1


def _run_analyze(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    results = []
    failures = 0
    for path in args.paths:
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.error("Cannot read %s: %s", path, exc)
            failures += 1
            continue
        analysis = analyze_image(data)
        results.append(
            {
                "path": str(path),
                "is_blurry": analysis.quality.is_blurry,
                "blur_score": analysis.quality.blur_score,
                "dominant_colors": [color.to_dict() for color in analysis.colors],
                "dimensions": list(analysis.dimensions) if analysis.dimensions else None,
            }
        )
    _write_json(results)
    return 1 if failures else 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    if args.command == "crawl":
        code = _run_crawl(args)
    else:
        code = _run_analyze(args)
    sys.exit(code)


if __name__ == "__main__":
    main()
