"""Command-line interface for the broken link checker."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import yaml

from linkprobe.checker import BrokenLinkChecker
from linkprobe.config import Config, settings
from linkprobe.logging_config import setup_logging
from linkprobe.models import RunResult


def load_options_file(path: str) -> dict:
    """Load checker options from a JSON or YAML file.

    Args:
        path: Path to a .json, .yaml or .yml file

    Returns:
        Dictionary of options
    """
    file_path = Path(path)
    with open(file_path, 'r') as f:
        if file_path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Options file {path} must contain a mapping")
    return data


def build_options(args) -> dict:
    """Merge an options file with command-line overrides."""
    options: dict = {}
    if args.options_file:
        options.update(load_options_file(args.options_file))

    if args.origin_url:
        options["origin_url"] = args.origin_url

    overrides = {
        "link_limit": args.link_limit,
        "link_order": args.link_order,
        "link_timeout_millis": args.link_timeout,
        "max_retries": args.max_retries,
        "max_redirects": args.max_redirects,
        "query_selector_all": args.selector,
        "wait_for_selector": args.wait_for_selector,
    }
    for key, value in overrides.items():
        if value is not None:
            options[key] = value

    if args.capture_condition or args.storage_location:
        screenshot_options = dict(options.get("screenshot_options") or {})
        if args.capture_condition:
            screenshot_options["capture_condition"] = args.capture_condition
        if args.storage_location:
            screenshot_options["storage_location"] = args.storage_location
        options["screenshot_options"] = screenshot_options

    return options


def print_run_result(result: RunResult) -> None:
    """Print a run result in a human readable way.

    Args:
        result: RunResult to print
    """
    if result.generic_error:
        print(f"\n❌ Run failed: {result.generic_error.error_message}")
        return

    origin = result.origin_link_result
    print(f"\n{'=' * 60}")
    print(f"Broken links for: {origin.target_url if origin else ''}")
    print(f"{'=' * 60}")
    print(f"\n📊 {result.passed_link_count}/{result.link_count} links passed")

    for link in result.link_results:
        marker = "✅" if link.passed else "❌"
        label = "origin" if link.is_origin else (link.anchor_text or link.html_element)
        print(f"  {marker} [{link.status_code}] {link.target_url} ({label})")
        if link.error:
            print(f"      {link.error.error_type.value}: {link.error.error_message}")
        if link.screenshot.screenshot_file:
            print(f"      screenshot: {link.screenshot.screenshot_file}")
        if link.screenshot.screenshot_error:
            print(f"      screenshot error: {link.screenshot.screenshot_error.error_message}")

    if result.errors:
        print("\n⚠️  Storage errors:")
        for error in result.errors:
            print(f"  • {error.error_type.value}: {error.error_message}")

    print(f"\n{'=' * 60}\n")


def check_command(args) -> int:
    """Check an origin URL and its links."""
    try:
        options = build_options(args)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: could not load options: {e}", file=sys.stderr)
        return 2

    if "origin_url" not in options:
        print("Error: an origin URL is required (argument or options file)", file=sys.stderr)
        return 2

    config = Config.from_env()
    if args.max_concurrent is not None:
        config.max_concurrent_links = args.max_concurrent
    if args.headed:
        config.headless = False

    result = asyncio.run(BrokenLinkChecker(config=config).run(options))

    if args.output == "json":
        output = result.to_json()
        if args.output_file:
            with open(args.output_file, 'w') as f:
                f.write(output)
            print(f"Results saved to {args.output_file}")
        else:
            print(output)
    else:
        print_run_result(result)

    return 0 if result.passed else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check a page and the links on it for broken links."
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=settings.LOG_FILE,
        help="Also write logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command")

    check_parser = subparsers.add_parser(
        "check", help="Check an origin URL and the links found on it."
    )
    check_parser.add_argument(
        "origin_url", nargs="?", help="URL to check (may come from --options-file)"
    )
    check_parser.add_argument(
        "--options-file", help="JSON or YAML file with checker options"
    )
    check_parser.add_argument("--link-limit", type=int, help="Maximum links to follow")
    check_parser.add_argument(
        "--link-order", choices=["FIRST_N", "RANDOM"], help="Which links to follow"
    )
    check_parser.add_argument(
        "--link-timeout", type=int, help="Per-link timeout in milliseconds"
    )
    check_parser.add_argument("--max-retries", type=int, help="Retries per link")
    check_parser.add_argument("--max-redirects", type=int, help="Redirects allowed per link")
    check_parser.add_argument("--selector", help="CSS selector for link elements")
    check_parser.add_argument(
        "--wait-for-selector", help="Wait for this selector before scraping"
    )
    check_parser.add_argument(
        "--capture-condition",
        choices=["NONE", "FAILING", "ALWAYS"],
        help="When to store screenshots",
    )
    check_parser.add_argument(
        "--storage-location", help="Cloud Storage location: bucket[/folder]"
    )
    check_parser.add_argument(
        "--max-concurrent", type=int, help="Links checked at the same time"
    )
    check_parser.add_argument(
        "--headed", action="store_true", help="Show the browser window"
    )
    check_parser.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    check_parser.add_argument(
        "--output-file",
        "-f",
        help="Write output to file (only for json format)",
    )
    check_parser.set_defaults(func=check_command)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file)

    if hasattr(args, "func"):
        return args.func(args)
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
