"""MCP server for Codemeter - precomputed code graph metrics."""

from codemeter.mcp import serve


def main() -> None:
    """Entry point for mcp-server-codemeter."""
    serve()


__all__ = ["main", "serve"]
