"""Entry point for running valve2homekit as a module.

Usage:
    python -m valve2homekit                    # Use env vars or defaults
    python -m valve2homekit -c /path/to/config.yaml
    python -m valve2homekit --help
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from pydantic import ValidationError

from . import __version__
from .app import run_app
from .config import create_default_config, print_env_help

DEFAULT_CONFIG_PATHS = [
    "/etc/valve2homekit/config.yaml",
    "/config/config.yaml",  # Docker default
    "config.yaml",
]


def find_config(config_path=None):
    """Resolve the config file to use, or None for env-based config."""
    if config_path or os.environ.get("MQTT_URL") is not None:
        return config_path

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return path
    return None


def main() -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = argparse.ArgumentParser(
        prog="valve2homekit",
        description="MQTT water valve to Apple HomeKit bridge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Docker/Environment variables (no config file needed):
  MQTT_URL=mqtt://192.168.1.100 TOPIC_STATUS=valve/stat TOPIC_COMMAND=valve/cmd valve2homekit

  # Config file:
  valve2homekit -c /etc/valve2homekit/config.yaml
  valve2homekit --generate-config > config.yaml
        """,
    )

    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (optional if using env vars)",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Print default configuration and exit",
    )
    parser.add_argument(
        "--env-help",
        action="store_true",
        help="Print environment variable help and exit",
    )

    args = parser.parse_args()

    if args.generate_config:
        print(create_default_config())
        return 0

    if args.env_help:
        print(print_env_help())
        return 0

    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        return 1

    using_env = os.environ.get("MQTT_URL") is not None
    config_path = find_config(args.config)

    if not config_path and not using_env:
        print("Error: No configuration found.", file=sys.stderr)
        print("\nOptions:", file=sys.stderr)
        print("  1. Set MQTT_URL environment variable (and other env vars)", file=sys.stderr)
        print("  2. Create a config file: valve2homekit --generate-config > config.yaml", file=sys.stderr)
        print("  3. Specify config path: valve2homekit -c /path/to/config.yaml", file=sys.stderr)
        print("\nFor environment variable help: valve2homekit --env-help", file=sys.stderr)
        return 1

    if config_path:
        print(f"Using configuration file: {config_path}")
    else:
        print(f"Using environment variable configuration (MQTT_URL={os.environ.get('MQTT_URL')})")

    try:
        asyncio.run(run_app(config_path))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
