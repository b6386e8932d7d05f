"""
Command-line entry point

    satisfactory-exporter --endpoint game.example.com:7777 --token-file /run/secrets/token

Flags override SATISFACTORY_EXPORTER_* environment variables and .env.
Exit codes: 0 clean shutdown, 1 server failed to start, 2 invalid configuration.
"""
import argparse
import contextlib
import signal
import sys
import threading
from typing import List, Optional

import uvicorn
import structlog
from uvicorn.server import HANDLED_SIGNALS

from . import __version__
from .config import load_settings
from .exceptions import ConfigurationError
from .logging_config import configure_logging
from .main import create_app

EXIT_OK = 0
EXIT_SERVE_FAILED = 1
EXIT_CONFIG_ERROR = 2


class ExporterServer(uvicorn.Server):
    """
    uvicorn server that treats SIGINT/SIGTERM as a clean shutdown

    uvicorn re-raises the captured signal once serving stops, which turns a
    graceful stop into a -15 exit or a KeyboardInterrupt traceback. Here the
    handlers only request the shutdown, so run() returns normally.
    """

    @contextlib.contextmanager
    def capture_signals(self):
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        original_handlers = {sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in original_handlers.items():
                signal.signal(sig, handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="satisfactory-exporter",
        description="Expose Satisfactory dedicated server state as Prometheus metrics"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-u", "--update-interval", type=int, default=None,
        help="Interval in seconds between each query to the server (default: 5)"
    )
    parser.add_argument(
        "-e", "--endpoint", default=None,
        help="Hostname and port of the server to query"
    )
    parser.add_argument(
        "--token", default=None,
        help="Bearer token to use for authentication"
    )
    parser.add_argument(
        "-t", "--token-file", default=None,
        help="File containing the bearer token to use for authentication"
    )
    parser.add_argument(
        "-a", "--allow-insecure", action="store_true", default=None,
        help="Allow insecure connections (e.g., to a server with a self-signed certificate)"
    )
    parser.add_argument(
        "-l", "--listen", default=None,
        help="Address:Port to which the server will listen (default: 127.0.0.1:3030)"
    )
    parser.add_argument(
        "--request-timeout", type=float, default=None,
        help="Upstream request timeout in seconds, shorter than the update interval"
    )
    parser.add_argument(
        "--metrics-path", default=None,
        help="Path of the metrics endpoint (default: /metrics)"
    )
    parser.add_argument(
        "--log-level", default=None,
        help="DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)"
    )
    parser.add_argument(
        "--json-logs", action=argparse.BooleanOptionalAction, default=None,
        help="Emit JSON logs (default) or human-readable console logs"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, validate configuration, then serve until shutdown"""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(
            update_interval=args.update_interval,
            endpoint=args.endpoint,
            token=args.token,
            token_file=args.token_file,
            allow_insecure=args.allow_insecure,
            listen=args.listen,
            request_timeout=args.request_timeout,
            metrics_path=args.metrics_path,
            log_level=args.log_level,
            json_logs=args.json_logs,
        )
        configure_logging(settings.log_level, json_logs=settings.json_logs)
        app = create_app(settings)
    except ConfigurationError as e:
        print(f"{parser.prog}: error: {e.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger = structlog.get_logger(__name__)
    server = ExporterServer(uvicorn.Config(
        app,
        host=settings.listen_host,
        port=settings.listen_port,
        log_config=None,
        access_log=False,
        lifespan="on",
    ))

    logger.info("listening", host=settings.listen_host, port=settings.listen_port)
    server.run()

    if not server.started:
        logger.error("server_start_failed", listen=settings.listen)
        return EXIT_SERVE_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
