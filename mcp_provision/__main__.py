"""Allows running: python -m mcp_provision"""

from .cli import main

if __name__ == "__main__":
    main()
