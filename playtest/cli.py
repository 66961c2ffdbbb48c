"""
Command line interface - `playtest test <url> -c config.json`
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import configure_logging, settings
from .services.progress import LoggingProgressReporter, SilentProgressReporter
from .services.runner import new_session_dir, run_test
from .utils.errors import ConfigLoadError, ConfigValidationError, QATestError
from .validation.validator import load_test_spec

logger = logging.getLogger(__name__)

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="playtest", description="Automated behavioral testing for browser games")
    parser.add_argument("--log-level", default=None, help=f"Logging level (default: {settings.LOG_LEVEL})")
    subparsers = parser.add_subparsers(dest="command", required=True)

    test_parser = subparsers.add_parser("test", help="Run a test against a game URL")
    test_parser.add_argument("url", help="Game URL")
    test_parser.add_argument("-c", "--config", help="Path to a JSON test config")
    test_parser.add_argument("-o", "--output", help="Session directory (default: a new directory under RESULTS_DIR)")
    test_parser.add_argument("--headed", action="store_true", help="Show the browser window")
    test_parser.add_argument("--llm", action="store_true", help="Add an LLM review to the evaluation")
    test_parser.add_argument("--quiet", action="store_true", help="Suppress progress output")

    validate_parser = subparsers.add_parser("validate", help="Validate a test config without running it")
    validate_parser.add_argument("config", help="Path to a JSON test config")

    return parser


def cmd_validate(args) -> int:
    try:
        spec = load_test_spec(args.config)
    except (ConfigLoadError, ConfigValidationError) as e:
        print(e.message, file=sys.stderr)
        return EXIT_CONFIG_ERROR
    print(f"Config OK: {len(spec.sequence)} step(s), {spec.retries} run retries, {spec.action_retries} action retries")
    return EXIT_PASS


def cmd_test(args) -> int:
    try:
        spec = load_test_spec(args.config)
    except (ConfigLoadError, ConfigValidationError) as e:
        print(e.message, file=sys.stderr)
        return EXIT_CONFIG_ERROR

    session_dir = new_session_dir() if not args.output else args.output
    progress = SilentProgressReporter() if args.quiet else LoggingProgressReporter()

    try:
        result = asyncio.run(run_test(
            args.url,
            spec,
            session_dir=session_dir,
            config_path=args.config,
            headless=False if args.headed else None,
            enable_llm=args.llm,
            progress_reporter=progress,
        ))
    except QATestError as e:
        logger.error(e.message)
        print(f"Results: {session_dir}", file=sys.stderr)
        return EXIT_FAIL

    print(f"{result.status.upper()}  score={result.playability_score}  issues={len(result.issues)}  "
          f"duration={result.test_duration}s")
    print(f"Results: {session_dir}")
    return EXIT_PASS if result.status == "pass" else EXIT_FAIL


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "validate":
        return cmd_validate(args)
    return cmd_test(args)


if __name__ == "__main__":
    sys.exit(main())
