"""Main entry point for the tmux-visualiser CLI."""

import argparse
import logging
import sys
from typing import List, Optional

import yaml

from ..config import VisualiserConfig, load_config

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmux-visualiser",
        description="Live dashboard of tmux sessions across every reachable socket",
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--lines", type=int, help="Scrollback lines captured per pane (default: 500)")
    parser.add_argument("--interval", type=float, help="Seconds between refreshes (default: 1.0)")
    parser.add_argument("--cmd-timeout", type=float, help="Per-command tmux timeout in seconds (default: 0.9)")
    parser.add_argument("--workers", type=int, help="Concurrent pane captures (default: 4)")
    parser.add_argument(
        "--all-panes", action="store_true", default=None,
        help="Show every pane instead of one cell per session",
    )
    parser.add_argument(
        "--no-default-socket", dest="include_default_socket", action="store_false", default=None,
        help="Skip the default tmux socket",
    )
    parser.add_argument(
        "--socket", dest="sockets", action="append",
        help="Extra tmux socket path (repeatable)",
    )
    parser.add_argument(
        "--no-lisa-sockets", dest="include_lisa_sockets", action="store_false", default=None,
        help="Skip lisa socket discovery",
    )
    parser.add_argument("--socket-glob", help="Glob for lisa sockets (comma separated)")
    parser.add_argument("--log-file", help="Write logs to this file")
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    return parser


def config_from_args(args: argparse.Namespace) -> VisualiserConfig:
    """Layer CLI flags over config.yaml over built-in defaults."""
    config = VisualiserConfig.from_dict(load_config(args.config))

    if args.lines is not None:
        config.lines = args.lines
    if args.interval is not None:
        config.interval = args.interval
    if args.cmd_timeout is not None:
        config.cmd_timeout = args.cmd_timeout
    if args.workers is not None:
        config.max_workers = args.workers
    if args.all_panes is not None:
        config.all_panes = args.all_panes
    if args.include_default_socket is not None:
        config.include_default_socket = args.include_default_socket
    if args.sockets:
        config.explicit_sockets = config.explicit_sockets + list(args.sockets)
    if args.include_lisa_sockets is not None:
        config.include_lisa_sockets = args.include_lisa_sockets
    if args.socket_glob is not None:
        config.socket_glob = args.socket_glob
    if args.log_file is not None:
        config.log_file = args.log_file
    if args.log_level is not None:
        config.log_level = args.log_level

    return config.normalize()


def setup_logging(config: VisualiserConfig) -> None:
    """Send logs to the configured file; curses owns the terminal otherwise."""
    level = getattr(logging, str(config.log_level).upper(), logging.INFO)
    if config.log_file:
        logging.basicConfig(level=level, format=LOG_FORMAT, filename=config.log_file)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[logging.NullHandler()])


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for tmux-visualiser."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    logger.info(
        f"Starting dashboard: lines={config.lines} interval={config.interval} "
        f"workers={config.max_workers} sockets={config.explicit_sockets}"
    )

    from .dashboard_tui import run_dashboard

    try:
        return run_dashboard(config)
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
