"""Unified entry point for vaultmirror.

This module provides a unified entry point that can start different interfaces:
- REST API server (default)
- CLI interface
"""

import argparse
import sys


def main():
    """Main entry point with interface selection."""
    parser = argparse.ArgumentParser(
        description="vaultmirror - Obsidian vaults mirrored from Google Drive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Interfaces:
  api         Start the REST API server (default)
  cli         Run a CLI command (sync, vaults, add-vault, grant, add-user)

Examples:
  vaultmirror                        # Start API server
  vaultmirror api --port 8080        # Start API on custom port
  vaultmirror cli sync --force       # Re-sync the default vault
  vaultmirror cli vaults             # List vaults
""",
    )

    parser.add_argument(
        "interface",
        nargs="?",
        default="api",
        choices=["api", "cli"],
        help="Which interface to start (default: api)",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind API server to (default: 127.0.0.1)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for API server (default: 8430)",
    )

    args, remaining = parser.parse_known_args()

    if args.interface == "api":
        from vaultmirror.core.config import (
            VAULTMIRROR_HOST,
            VAULTMIRROR_PORT,
            setup_logging,
        )

        setup_logging()
        host = args.host or VAULTMIRROR_HOST or "127.0.0.1"
        port = args.port or VAULTMIRROR_PORT

        print(f"Starting vaultmirror API server on {host}:{port}")

        from vaultmirror.api.app import run_server

        run_server(host=host, port=port)

    elif args.interface == "cli":
        from vaultmirror.interfaces.cli.app import run_cli

        sys.argv = [sys.argv[0], *remaining]
        run_cli()


if __name__ == "__main__":
    main()
