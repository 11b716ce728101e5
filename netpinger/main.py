"""Main entry point for netpinger."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Dict, List, Optional

import uvicorn
from pydantic import ValidationError

from netpinger.config import LOG_FORMATS, Settings
from netpinger.notifications.dispatcher import ActionDispatcher
from netpinger.observer import LoggingObserver
from netpinger.probe.transport import IcmpTransport, TransportError
from netpinger.scheduler.round_scheduler import PingEngine
from netpinger.version import SERVICE_NAME, __version__
from netpinger.web.app import create_app

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure logging based on settings.

    Logs always go to stdout. When ``log_file`` is set they are also written
    to a rotating log file.
    """
    log_level = getattr(logging, settings.log_level)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            settings.log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8",
        ))

    if settings.log_format == "json":
        from pythonjsonlogger import jsonlogger

        class CustomJsonFormatter(jsonlogger.JsonFormatter):
            """JSON formatter with service metadata."""

            def add_fields(self, log_record, record, message_dict):
                super().add_fields(log_record, record, message_dict)
                log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
                log_record["level"] = record.levelname
                log_record["logger"] = record.name
                log_record["service"] = SERVICE_NAME

        formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    for handler in handlers:
        handler.setFormatter(formatter)

    # Configure root logger
    logging.root.handlers = handlers
    logging.root.setLevel(log_level)

    # Reduce noise from third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netpinger",
        usage="%(prog)s [options] <ip> [<ip> ...]",
        description="Ping a group of hosts and run commands when the group goes up or down.",
    )
    parser.add_argument("targets", nargs="*", metavar="ip", help="IPv4 address to monitor")

    general = parser.add_argument_group("General options")
    general.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    general.add_argument("-a", "--alive-cmd", help="Command to run when network is alive")
    general.add_argument("-d", "--dead-cmd", help="Command to run when network is dead")
    general.add_argument("--webhook-url", help="Discord/Slack webhook notified on verdict changes")
    general.add_argument("--action-timeout", help="Kill commands running longer than this (default 60s)")
    general.add_argument("--log-format", choices=LOG_FORMATS, help="Log output format")
    general.add_argument("--log-file", help="Also write logs to this rotating file")

    ping = parser.add_argument_group("Ping options")
    ping.add_argument("--wait", dest="wait_timeout", help="Single ping wait timeout (default 1s)")
    ping.add_argument("--pause", dest="pause_duration", help="Between ping pause duration (default 5s)")
    ping.add_argument("--alive-count", type=int, help="Number of alive pings to consider host alive (default 3)")
    ping.add_argument("--dead-count", type=int, help="Number of dead pings to consider host dead (default 3)")
    ping.add_argument(
        "--privileged",
        action="store_true",
        default=None,
        help="Use a raw socket (needs root or CAP_NET_RAW)",
    )

    group = parser.add_argument_group("Grouping options")
    group.add_argument(
        "--group-alive",
        type=int,
        help="Number of alive hosts to consider whole setup alive (default ip count)",
    )
    group.add_argument(
        "--group-dead",
        type=int,
        help="Number of alive hosts to consider whole setup dead (default 0)",
    )

    web = parser.add_argument_group("Status server options")
    web.add_argument("--web", dest="web_enabled", action="store_true", default=None, help="Serve status and metrics over HTTP")
    web.add_argument("--web-host", help="Status server bind address (default 0.0.0.0)")
    web.add_argument("--web-port", type=int, help="Status server port (default 8080)")

    return parser


def build_overrides(args: argparse.Namespace) -> Dict[str, object]:
    """Turn parsed arguments into Settings keyword arguments.

    Options left unset are omitted so environment values still apply.
    """
    overrides: Dict[str, object] = {}
    if args.targets:
        overrides["targets"] = ",".join(args.targets)
    if args.verbose:
        overrides["log_level"] = "DEBUG"

    for name in (
        "alive_cmd",
        "dead_cmd",
        "webhook_url",
        "action_timeout",
        "log_format",
        "log_file",
        "wait_timeout",
        "pause_duration",
        "alive_count",
        "dead_count",
        "privileged",
        "group_alive",
        "group_dead",
        "web_enabled",
        "web_host",
        "web_port",
    ):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value

    return overrides


def load_settings(argv: Optional[List[str]] = None) -> Settings:
    """Parse the command line and merge it over environment settings.

    Raises:
        ValidationError: If the resulting configuration is invalid.
    """
    args = build_parser().parse_args(argv)
    return Settings(**build_overrides(args))


async def serve(settings: Settings) -> None:
    """Open the probe channel and run the engine (and status server).

    Raises:
        TransportError: If the ICMP socket cannot be opened or its reply
            stream closes.
    """
    transport = IcmpTransport.open(privileged=settings.privileged)

    try:
        engine = PingEngine.from_settings(
            settings,
            transport,
            dispatcher=ActionDispatcher.from_settings(settings),
            observer=LoggingObserver(settings.target_list),
        )

        logger.info(
            "Starting the pinger (alive on %d, dead on %d, %d hosts)",
            engine.group.alive_threshold,
            engine.group.dead_threshold,
            len(engine.hosts),
        )

        tasks = [asyncio.create_task(engine.run(), name="engine")]
        if settings.web_enabled:
            server = uvicorn.Server(uvicorn.Config(
                create_app(engine),
                host=settings.web_host,
                port=settings.web_port,
                log_level=settings.log_level.lower(),
            ))
            tasks.append(asyncio.create_task(server.serve(), name="web"))
            logger.info("Status server on %s:%d", settings.web_host, settings.web_port)

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()
    finally:
        transport.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Run the application."""
    try:
        settings = load_settings(argv)
    except ValidationError as e:
        print(f"netpinger: invalid configuration\n{e}", file=sys.stderr)
        return 2

    configure_logging(settings)

    logger.info("Starting netpinger v%s", __version__)
    logger.info("Targets: %s", ", ".join(settings.target_list))
    logger.info(
        "Wait %.3fs, pause %.3fs, alive after %d, dead after %d",
        settings.wait_timeout,
        settings.pause_duration,
        settings.alive_count,
        settings.dead_count,
    )
    logger.info("Webhook configured: %s", settings.webhook_configured)
    logger.info("Log format: %s", settings.log_format)

    try:
        asyncio.run(serve(settings))
    except TransportError as e:
        logger.critical("Probe channel failure: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
