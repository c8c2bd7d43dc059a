"""
yakchat - Main entry point for the application.
"""

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from . import __version__
from .bigint import DomainParameters
from .config import Config
from .constants import (
    CONFIG_FILENAME,
    DEFAULT_DATA_DIR,
    LOG_BACKUP_COUNT,
    LOG_DATE_FORMAT,
    LOG_FILENAME,
    LOG_FORMAT,
    LOG_MAX_BYTES,
)
from .errors import ConfigError
from .utils import validate_port

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="yakchat",
        description="yakchat - Two-party chat over a YAK key exchange and RC4",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  yakchat 5000                  # Listen on 127.0.0.1:5000
  yakchat 5001 --host 0.0.0.0   # Listen on all interfaces
  yakchat 5000 --debug          # Verbose logging to the data directory
        """,
    )

    parser.add_argument("--version", action="version", version=f"yakchat {__version__}")

    parser.add_argument("port", type=int, help="Port to listen on for incoming sessions")

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Address to listen on (default: from config, 127.0.0.1)",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=f"Configuration file (default: <data-dir>/{CONFIG_FILENAME})",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help=f"Data directory for config and logs (default: {DEFAULT_DATA_DIR})",
    )

    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser


def setup_logging(config: Config, data_dir: Path, debug: bool = False) -> None:
    """Configure the root logger from the logging section of ``config``."""
    level_name = "DEBUG" if debug else str(config.get("logging", "level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    if config.get("logging", "file_logging", True):
        handler = RotatingFileHandler(
            data_dir / LOG_FILENAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # The terminal belongs to the UI; console output goes to stderr only on request
    if config.get("logging", "console_logging", False):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        root.addHandler(handler)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for yakchat."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not validate_port(args.port):
        parser.error(f"invalid port: {args.port}")

    data_dir = Path(args.data_dir or DEFAULT_DATA_DIR).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    config_path = Path(args.config).expanduser() if args.config else data_dir / CONFIG_FILENAME
    try:
        config = Config(config_path)
    except ConfigError as e:
        print(f"yakchat: {e}", file=sys.stderr)
        return 1

    setup_logging(config, data_dir, args.debug)

    host = args.host or config.get("network", "host")
    logger.info(f"Starting yakchat {__version__} on {host}:{args.port}")

    # Deferred so --help and --version work without initializing Textual
    from .ui import YakChatApp

    app = YakChatApp(
        port=args.port,
        domain=DomainParameters.default(),
        host=host,
        handshake_timeout=config.get("network", "handshake_timeout"),
        theme=config.get("ui", "theme", "dark"),
    )
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
