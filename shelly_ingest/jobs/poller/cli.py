"""CLI entry point for the poller daemon."""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import os
import signal
import sys
import threading
from typing import List, Optional

from ...cloud.client import CloudClient
from ...common.config import Configuration, get_settings
from ...common.db import get_engine
from ...common.errors import ConfigurationError
from ...pipelines.device_directory import DeviceDirectory
from ...pipelines.metric_store import MetricStore
from .config import RunnerConfig
from .runner import Poller

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="shellyd",
        description="read sensor data from the shelly cloud into the meteo database",
    )
    p.add_argument("-c", "--config", help="read configuration from file CONFIG")
    p.add_argument("-d", "--debug", action="store_true", help="enable debug messages")
    p.add_argument("-f", "--foreground", action="store_true", help="run in the foreground")
    p.add_argument("-n", "--dryrun", action="store_true", help="don't update the database")
    p.add_argument("-s", "--syslog", action="store_true", help="send log messages to syslog")
    p.add_argument("--once", action="store_true", help="run a single cycle and exit")
    return p


def configure_logging(level: str, use_syslog: bool) -> None:
    handlers: List[logging.Handler] = []
    if use_syslog:
        address = "/dev/log" if os.path.exists("/dev/log") else ("localhost", 514)
        handler = logging.handlers.SysLogHandler(
            address=address, facility=logging.handlers.SysLogHandler.LOG_LOCAL0,
        )
        handler.setFormatter(logging.Formatter("shellyd[%(process)d]: %(levelname)s %(message)s"))
        handlers.append(handler)
    else:
        handlers.append(logging.StreamHandler())
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def daemonize() -> None:
    """Detach from the terminal; the parent process exits."""
    pid = os.fork()
    if pid > 0:
        os._exit(0)
    os.setsid()
    os.chdir("/")
    os.umask(0)


def install_signal_handlers(stop_event: threading.Event) -> None:
    def _handle(signum, _frame):
        logger.info("signal %d received, stopping after the current cycle", signum)
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    configure_logging("DEBUG" if args.debug else settings.log_level, args.syslog)
    logger.debug("command line parsed")

    config_file = args.config or settings.config_file
    try:
        config = Configuration.from_file(config_file)
    except ConfigurationError as e:
        logger.error("cannot load configuration: %s", e)
        return 1

    if args.foreground or args.once:
        logger.debug("stay in foreground")
    else:
        daemonize()

    try:
        cfg = RunnerConfig.from_config(config, once=args.once, dry_run=args.dryrun)
        directory = DeviceDirectory.from_config(config)
        client = CloudClient.from_config(config)
        engine = get_engine(config)
    except ConfigurationError as e:
        logger.error("incomplete configuration: %s", e)
        return 1

    stop_event = threading.Event()
    install_signal_handlers(stop_event)

    poller = Poller(
        cfg,
        directory,
        client,
        store_factory=lambda: MetricStore(engine, dry_run=cfg.dry_run),
        stop_event=stop_event,
    )
    logger.info("Shelly poller started, config=%s devices=%d", config_file, len(directory))
    try:
        poller.run()
    finally:
        client.close()
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
