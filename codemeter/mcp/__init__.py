"""
MCP server for Codemeter.

Exposes precomputed code metrics to LLMs via the Model Context Protocol.

Tools:
    - metrics_file: Metrics for one file (and optionally its symbols)
    - metrics_symbol: Metrics for one symbol
    - metrics_hotspots: Files ranked by complexity score
    - metrics_stats: Graph and metrics table statistics

Usage:
    Install: pip install mcp-server-codemeter
    Run: mcp-server-codemeter
"""

import asyncio

from codemeter.mcp.server import serve as _serve


def serve() -> None:
    """Entry point for the MCP server."""
    asyncio.run(_serve())


__all__ = ["serve"]
