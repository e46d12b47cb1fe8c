"""MCP lookup server for knowpack builds."""

from knowpack.server.mcp_server import create_mcp_server

__all__ = ["create_mcp_server"]
