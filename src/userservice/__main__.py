"""
=============================================================================
USER SERVICE - COMMAND LINE ENTRY POINT
=============================================================================

    python -m userservice
    user-service --port 9000 --workers 8

DATABASE_URL must be set (environment, .env file, or --database-url).
Flags override environment values.

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import ServiceConfig
from .errors import ConfigError
from .server import UserServer


logger = logging.getLogger("userservice")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="user-service",
        description="User CRUD service over a minimal HTTP front end",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  DATABASE_URL=postgresql+psycopg2://app:pw@localhost/users python -m userservice
  python -m userservice --port 3000 --workers 8
  python -m userservice --database-url sqlite:///users.db --log-format json
        """
    )

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: $HTTP_HOST or 0.0.0.0)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: $HTTP_PORT or 8080)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Maximum worker threads (default: $HTTP_WORKERS or 16)"
    )
    parser.add_argument(
        "--database-url", "-d",
        default=None,
        help="SQLAlchemy database URL (default: $DATABASE_URL)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: $HTTP_LOG_LEVEL or INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: $HTTP_LOG_FORMAT or text)"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"user-service {__version__}"
    )
    return parser


def load_config(args: argparse.Namespace) -> ServiceConfig:
    """
    Environment first, then flags on top.

    Raises:
        ConfigError: If no database URL is available or a value is bad.
    """
    config = ServiceConfig.from_env(database_url=args.database_url)

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as e:
        logging.basicConfig(format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        logger.error("Configuration error: %s", e)
        return 1

    return UserServer(config).run()


if __name__ == "__main__":
    sys.exit(main())
