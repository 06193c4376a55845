"""
mcp-provision - Development environment MCP installer
Main entry point for running the provisioning pipeline from a checkout.
"""

import sys

from loguru import logger as log

from mcp_provision.cli import run_cli

if __name__ == "__main__":
    try:
        sys.exit(run_cli())
    except KeyboardInterrupt:
        log.info("Interrupted")
        sys.exit(130)
