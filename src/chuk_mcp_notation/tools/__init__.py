"""
MCP tool implementations.

Tools are organized by domain:
- notation - Score validation, rendering, compilation and annotation discovery
"""

from chuk_mcp_notation.tools.notation import register_notation_tools

__all__ = [
    "register_notation_tools",
]
