"""
Command line interface.

Flags are layered on top of the TGI_* environment: a flag given on the
command line wins, an absent flag leaves the environment value alone.
"""

import argparse
from collections.abc import Sequence

from tgi.config.settings import Settings
from tgi.version import VERSION

VERSION_BANNER = f"tondi-graph-inspector-processing version {VERSION}"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser of the processing tier."""
    parser = argparse.ArgumentParser(
        prog="tgi-processing",
        description="Tondi Graph Inspector processing tier: ingests node blocks into PostgreSQL",
    )
    parser.add_argument(
        "-V", "--show-version",
        action="store_true",
        help="Display version information and exit",
    )
    parser.add_argument(
        "--connection-string",
        help="PostgreSQL DSN: postgres://<username>:<password>@<host>:<port>/<database>",
    )
    parser.add_argument(
        "-s", "--rpcserver",
        help="RPC server to connect to (host[:port], default localhost:18110)",
    )
    parser.add_argument(
        "--resync",
        action="store_true",
        default=None,
        help="Force to resync all available node blocks with the database",
    )
    parser.add_argument(
        "--clear-db",
        action="store_true",
        default=None,
        help="Clear the database and sync from scratch",
    )
    parser.add_argument(
        "--testnet",
        action="store_true",
        default=None,
        help="Use the test network",
    )
    parser.add_argument("--netsuffix", type=int, help="Testnet network suffix number")
    parser.add_argument(
        "-d", "--loglevel",
        dest="log_level",
        help="Logging level (trace, debug, info, warn, error)",
    )
    parser.add_argument("--log-dir", help="Directory to log output")
    parser.add_argument(
        "--health-port",
        dest="health_check_port",
        type=int,
        help="Serve /health, /readiness and /liveness on this port",
    )
    parser.add_argument(
        "--min-node-version",
        help="Refuse to ingest from nodes older than this version",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def load_settings(args: argparse.Namespace) -> Settings:
    """
    Build settings from parsed flags and the environment.

    Raises:
        pydantic.ValidationError: If the result is invalid
            (e.g. no connection string at all)
    """
    overrides = {
        key: value
        for key, value in vars(args).items()
        if key != "show_version" and value is not None
    }
    return Settings(**overrides)
