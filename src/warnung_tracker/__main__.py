"""CLI entry point for Warnung Tracker.

This module runs one fetch/decode/reconcile pass from the command line.
Reports go to standard output, logs to standard error.

Usage:
    python -m warnung_tracker [options]
"""

from __future__ import annotations

import argparse
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from warnung_tracker import __version__
from warnung_tracker.config import FeedSettings, Settings, clear_settings_cache, get_settings
from warnung_tracker.pipeline import Pipeline
from warnung_tracker.storage.repos import StoreError

# Application info
APP_NAME = "Warnung Tracker"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_STORE_ERROR = 3
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="warnung-tracker",
        description="Report civil-defense warnings not seen before.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m warnung_tracker                       Fetch and report new warnings
  python -m warnung_tracker --config-check        Validate config and exit
  python -m warnung_tracker --store-path /tmp/db  Use another store directory
  python -m warnung_tracker --log-level DEBUG     Enable debug logging
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without fetching",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--url",
        default=None,
        help="Override the feed URL (default: from settings)",
    )

    parser.add_argument(
        "--store-path",
        default=None,
        help="Override the file store directory (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "sqlalchemy": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
    """
    summary = settings.summary()
    print("Configuration:")
    print(f"  Feed URL: {summary['feed_url']}")
    print(f"  Timeout: {summary['timeout']}")
    print(f"  Store: {summary['store_backend']} ({summary['store_location']})")
    print(f"  Collection: {summary['collection']}")
    print(f"  Log Level: {summary['log_level']}")
    print()


def print_validation_errors(error: ValidationError) -> None:
    """Print validation errors to stderr, one per field."""
    print("Configuration validation failed:", file=sys.stderr)
    for entry in error.errors():
        field = ".".join(str(loc) for loc in entry["loc"])
        msg = entry["msg"]
        print(f"  {field}: {msg}", file=sys.stderr)


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        # Clear cache to force reload
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print_validation_errors(e)
        return None


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with command line overrides applied.

    Raises:
        ValidationError: If the overridden feed URL is invalid.
    """
    update: dict[str, object] = {}
    if args.url:
        update["feed"] = FeedSettings.model_validate(
            {**settings.feed.model_dump(by_alias=True), "FEED_URL": args.url}
        )
    if args.store_path:
        update["store"] = settings.store.model_copy(
            update={"backend": "file", "path": args.store_path}
        )
    if args.log_level:
        update["log_level"] = args.log_level
    return settings.model_copy(update=update) if update else settings


def run_config_check(settings: Settings) -> int:
    """Run configuration check and exit.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings)
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


def run_pipeline(settings: Settings) -> int:
    """Run the pipeline once and map its outcome to an exit code.

    Fetch and decode failures are reported by the pipeline and still
    exit successfully; store failures do not.

    Args:
        settings: Application settings.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)

    try:
        Pipeline(settings).run()
        return EXIT_SUCCESS
    except StoreError as e:
        logger.error("Store failure, aborting run: %s", e)
        return EXIT_STORE_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Pipeline failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Validate configuration first
    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    try:
        settings = apply_overrides(settings, args)
    except ValidationError as e:
        print_validation_errors(e)
        sys.exit(EXIT_CONFIG_ERROR)
    configure_logging(settings.log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    sys.exit(run_pipeline(settings))


if __name__ == "__main__":
    main()
