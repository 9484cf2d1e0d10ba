#!/usr/bin/env python3

import argparse
import logging
import signal
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional

from ortu.clipboard import ClipboardReader, get_clipboard_reader
from ortu.config import OrtuConfig
from ortu.database.history_manager import HistoryManager
from ortu.services.clipboard_service import ClipboardService
from ortu.services.history_service import HistoryService
from ortu.services.retention_service import RetentionService

logger = logging.getLogger(__name__)


class OrtuApp:

    def __init__(
        self,
        config: Optional[OrtuConfig] = None,
        reader: Optional[ClipboardReader] = None,
    ):
        self.config = config or OrtuConfig.from_env()
        self._reader = reader
        self.manager: Optional[HistoryManager] = None
        self.history: Optional[HistoryService] = None
        self.clipboard_service: Optional[ClipboardService] = None
        self.retention_service: Optional[RetentionService] = None
        self.running = False

    def start(self) -> None:
        """Open the store, purge last session's items and start both loops.

        Store and clipboard failures propagate: the app cannot run without
        either.
        """
        if self.running:
            return

        self.manager = self.config.create_manager()
        try:
            self.manager.clear_ephemeral_on_start()
            reader = self._reader or get_clipboard_reader()
        except Exception:
            self.manager.close()
            raise

        self.history = HistoryService(self.manager)

        self.clipboard_service = ClipboardService(
            reader,
            self.manager,
            poll_interval=self.config.poll_interval,
            max_content_bytes=self.config.max_content_bytes,
        )
        self.retention_service = RetentionService(
            self.manager, interval=self.config.prune_interval)

        self.clipboard_service.start()
        self.retention_service.start()
        self.running = True
        logger.info("Ortu running with history at %s", self.config.db_path)

    def stop(self) -> None:
        if not self.running:
            return

        self.running = False

        if self.clipboard_service:
            self.clipboard_service.stop()

        if self.retention_service:
            self.retention_service.stop()

        if self.manager:
            self.manager.close()

        logger.info("Ortu stopped")

    def run_forever(self, serve_api: bool = False) -> None:
        self.start()

        try:
            if serve_api:
                from ortu.api.main import serve

                serve(self.history, host=self.config.api_host,
                      port=self.config.api_port)
            else:
                while self.running:
                    time.sleep(1.0)
        except KeyboardInterrupt:
            print("\nStopping...")
        finally:
            self.stop()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Ortu - clipboard history with categories and groups"
    )

    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to the history database (default: ~/.ortu/ortu.db)"
    )

    parser.add_argument(
        "-i", "--poll-interval",
        type=float,
        default=None,
        help="Clipboard polling interval in seconds (default: 0.5)"
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load settings from this .env file"
    )

    parser.add_argument(
        "--api",
        action="store_true",
        help="Serve the command API over HTTP"
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="API bind address (default: 127.0.0.1)"
    )

    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="API port (default: 3001)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )

    return parser.parse_args(argv)


def build_config(args) -> OrtuConfig:
    config = OrtuConfig.from_env(env_path=args.env_file)
    overrides = {}
    if args.db is not None:
        overrides["db_path"] = args.db.expanduser()
    if args.poll_interval is not None:
        overrides["poll_interval"] = args.poll_interval
    if args.host is not None:
        overrides["api_host"] = args.host
    if args.port is not None:
        overrides["api_port"] = args.port
    return replace(config, **overrides)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    app = OrtuApp(config=build_config(args))

    def signal_handler(signum, frame):
        app.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run_forever(serve_api=args.api)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
