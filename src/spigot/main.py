#!/usr/bin/env python3
"""spigot - rate-limited native token faucet.

Entry point for the spigot CLI and HTTP service.
"""

import asyncio
import logging
import signal
import sys

from spigot.cli import create_parser, run_cli
from spigot.config import SpigotConfig
from spigot.observability.logging import configure_logging
from spigot.persistence import HostStore
from spigot.runtime import ContractHost
from spigot.server import FaucetServer


def parse_args(argv: list[str] | None = None):
    """Parse command line arguments."""
    return create_parser().parse_args(argv)


async def run_service() -> None:
    """Run the spigot HTTP service (long-running mode).

    Loads the host from the state file, serves it over HTTP and saves it
    again on shutdown.
    """
    config = SpigotConfig()
    configure_logging(level=config.log_level, log_format=config.log_format)

    logger = logging.getLogger(__name__)
    logger.info("spigot starting")
    logger.info("State file: %s", config.state_file)

    store = HostStore(config.state_file)
    host = ContractHost.from_record(
        store.load(),
        max_key_size=config.storage_max_key_size,
        max_value_size=config.storage_max_value_size,
    )
    if host.deployed:
        logger.info("Faucet loaded: %s", host.contract)
    else:
        logger.warning("No faucet deployed yet; run `spigot deploy` first")

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def on_shutdown_signal(sig_name: str) -> None:
        logger.info("Received signal %s, initiating shutdown", sig_name)
        shutdown_event.set()

    loop.add_signal_handler(signal.SIGTERM, lambda: on_shutdown_signal("SIGTERM"))
    loop.add_signal_handler(signal.SIGINT, lambda: on_shutdown_signal("SIGINT"))

    server = FaucetServer(host, store, bind_host=config.http_host, port=config.http_port)
    await server.start()
    logger.info("spigot service ready on %s:%d", config.http_host, config.http_port)

    await shutdown_event.wait()

    logger.info("spigot shutting down...")
    await server.stop()
    store.save(host.to_record())
    logger.info("spigot shutdown complete")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for spigot."""
    args = parse_args(argv)

    if args.command == "serve":
        asyncio.run(run_service())
        return 0

    exit_code = run_cli(args)
    if exit_code < 0:
        create_parser().print_help()
        return 0
    return exit_code


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
