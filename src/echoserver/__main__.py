"""
=============================================================================
ECHOSERVER CLI ENTRY POINT
=============================================================================

    # TCP echo service on 0.0.0.0:5005
    python -m echoserver tcp

    # UDP echo service on a custom port, faster shutdown polling
    python -m echoserver udp --port 6000 --poll-interval 1

    # Talk to a running service
    python -m echoserver client tcp --message hello
    python -m echoserver client udp --host 10.0.0.5

Defaults come from ServerConfig.from_env() (ECHO_* variables); flags
override them. Stop a service with Ctrl+C or SIGTERM.

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .client import tcp_echo, udp_echo
from .config import ServerConfig
from .server import EchoServer, TRANSPORTS


logger = logging.getLogger("echoserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="echoserver",
        description="TCP/UDP echo services with graceful shutdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m echoserver tcp                        # TCP on 0.0.0.0:5005
  python -m echoserver udp --port 6000            # UDP on a custom port
  python -m echoserver client tcp --message hi    # one round trip
        """,
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"echoserver {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # ─────────────────────────────────────────────────────────────────────
    # SERVICES
    # ─────────────────────────────────────────────────────────────────────

    for transport in TRANSPORTS:
        service = subparsers.add_parser(transport, help=f"Run the {transport.upper()} echo service")
        service.add_argument("--host", "-H", default=None, help="Address to bind to (default: 0.0.0.0)")
        service.add_argument("--port", "-p", type=int, default=None, help="Port to bind to (default: 5005)")
        service.add_argument(
            "--poll-interval",
            type=float,
            default=None,
            help="Seconds between cancellation checks (default: 2 for tcp, 5 for udp)",
        )
        service.add_argument(
            "--log-level", "-l",
            choices=["DEBUG", "INFO", "WARNING", "ERROR"],
            default=None,
            help="Logging level (default: INFO)",
        )

    # ─────────────────────────────────────────────────────────────────────
    # CLIENT
    # ─────────────────────────────────────────────────────────────────────

    client = subparsers.add_parser("client", help="Send one message and print the echo")
    client.add_argument("transport", choices=TRANSPORTS)
    client.add_argument("--host", "-H", default="127.0.0.1", help="Server address (default: 127.0.0.1)")
    client.add_argument("--port", "-p", type=int, default=5005, help="Server port (default: 5005)")
    client.add_argument("--message", "-m", default="hello", help="Payload to send (default: hello)")
    client.add_argument("--timeout", "-t", type=float, default=None, help="Client timeout in seconds")

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment defaults, overridden by whichever flags were given."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.poll_interval is not None:
        if args.command == "tcp":
            config.stream_poll_interval = args.poll_interval
        else:
            config.packet_poll_interval = args.poll_interval

    return config


def run_client(args: argparse.Namespace) -> int:
    payload = args.message.encode("utf-8")
    try:
        if args.transport == "tcp":
            response = tcp_echo(args.host, args.port, payload, timeout=args.timeout or 1.0)
        else:
            response = udp_echo(args.host, args.port, payload, timeout=args.timeout or 2.0)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(response.decode("utf-8", errors="replace"))
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "client":
        return run_client(args)

    try:
        server = EchoServer(config_from_args(args), transport=args.command)
        server.run()
    except (OSError, ValueError) as e:
        # Startup errors: bad configuration or the socket could not be bound
        logger.error(f"Failed to start {args.command} echo server: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
