"""
mcp-provision - idempotent setup of AI CLI tooling and MCP server configs
for development environments.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
