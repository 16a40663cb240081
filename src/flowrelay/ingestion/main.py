"""FlowRelay entry point.

Runs the NetFlow relay as a standalone service. Flags override the
values loaded from the environment.
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Sequence
from typing import NoReturn

from flowrelay.common.config import Settings, get_settings
from flowrelay.common.exceptions import FlowRelayError
from flowrelay.common.logging import get_logger, setup_logging
from flowrelay.common.metrics import set_app_info, start_metrics_server
from flowrelay.relay import FlowRelay

logger = get_logger(__name__)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    """Build the command line parser with defaults taken from settings."""
    parser = argparse.ArgumentParser(
        prog="flowrelay",
        description="Decode NetFlow v5 packets and forward them as JSON or InfluxDB line protocol.",
    )
    parser.add_argument(
        "-in", "--in",
        dest="listen_address",
        default=settings.receiver.listen_address,
        help="Address and port to listen NetFlow packets (default: %(default)s)",
    )
    parser.add_argument(
        "-method", "--method",
        dest="method",
        default=settings.output.method,
        help="Output method: stdout, udp (default: %(default)s)",
    )
    parser.add_argument(
        "-out", "--out",
        dest="destination",
        default=settings.output.destination,
        help="Address and port of influxdb to send decoded data",
    )
    parser.add_argument(
        "-buffer", "--buffer",
        dest="receive_buffer_bytes",
        type=int,
        default=settings.receiver.receive_buffer_bytes,
        help="Size of RxQueue, i.e. value for SO_RCVBUF in bytes (default: %(default)s)",
    )
    return parser


def load_settings(argv: Sequence[str] | None = None) -> Settings:
    """Load settings from the environment and apply command line flags."""
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)

    return settings.model_copy(update={
        "receiver": settings.receiver.model_copy(update={
            "listen_address": args.listen_address,
            "receive_buffer_bytes": args.receive_buffer_bytes,
        }),
        "output": settings.output.model_copy(update={
            "method": args.method,
            "destination": args.destination,
        }),
    })


async def main(settings: Settings) -> None:
    """Main entry point for the relay service."""
    set_app_info(
        version=settings.app_version,
        environment=settings.environment,
    )
    start_metrics_server(settings.metrics)

    relay = FlowRelay(settings)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        logger.info("Received shutdown signal", signal=sig)
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    try:
        await relay.start()
        await stop_event.wait()
    finally:
        logger.info("Shutting down")
        await relay.stop()
        logger.info("Shutdown complete")


def run(argv: Sequence[str] | None = None) -> NoReturn:
    """Run the relay service."""
    settings = load_settings(argv)
    setup_logging(settings.logging)

    try:
        # Use uvloop for better performance
        try:
            import uvloop
            asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
        except ImportError:
            pass

        asyncio.run(main(settings))
        sys.exit(0)
    except KeyboardInterrupt:
        sys.exit(0)
    except FlowRelayError as e:
        logger.error("Startup failed", **e.to_dict())
        sys.exit(1)
    except Exception as e:
        logger.error("Service failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    run()
