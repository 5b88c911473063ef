"""CLI for Kubernetes image reaper."""

import argparse
import datetime
import logging
import signal
import sys
import threading
from pathlib import Path
from types import FrameType

import structlog

from .config import Config
from .factory import Factory


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description=(
            "Periodically reap registry images not used by any pod in a "
            "Kubernetes cluster."
        )
    )
    parser.add_argument(
        "-c",
        "--config-file",
        "--file",
        type=Path,
        help="reaper config file",
        default=Path("/etc/kube-reaper/config.yaml"),
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
        default=False,
    )
    parser.add_argument(
        "-x",
        "--dry-run",
        action="store_true",
        help="Dry run only: do not delete any images",
        default=False,
    )
    parser.add_argument(
        "-o",
        "--once",
        action="store_true",
        help="Run a single cleanup pass and exit",
        default=False,
    )
    return parser.parse_args()


def _load_config(args: argparse.Namespace) -> Config:
    cfg = Config.from_file(args.config_file)

    # Override settings in config, if dry_run or debug are specified here
    if args.dry_run:
        cfg.dry_run = True
    if args.debug:
        cfg.debug = True
    return cfg


def _configure_logging(debug: bool) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level)
    )


def main() -> None:
    """Run the reaper until interrupted, or for a single pass."""
    args = _parse_args()
    cfg = _load_config(args)
    _configure_logging(cfg.debug)
    logger = structlog.get_logger("kube_reaper")
    factory = Factory(cfg, logger)

    if args.once:
        reaper = factory.create_reaper()
        errors = reaper.run_pass(
            cfg.cluster.namespaces, cfg.repositories, cfg.max_images
        )
        for err in errors:
            logger.error(str(err), repository=err.repository)
        sys.exit(1 if errors else 0)

    scheduler = factory.create_scheduler()
    stopping = threading.Event()

    def _request_stop(signum: int, frame: FrameType | None) -> None:
        logger.info(f"Received {signal.Signals(signum).name}; stopping.")
        stopping.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)
    scheduler.start(datetime.timedelta(minutes=cfg.interval))
    stopping.wait()
    scheduler.stop()
