"""MCP server implementation for Codemeter."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from codemeter.config import MetricsSettings
from codemeter.core.exceptions import CodemeterError
from codemeter.core.storage import GraphRepository

log = logging.getLogger(__name__)

server = Server("codemeter")

_NOT_METERED = "not metered yet; treat as unknown, not zero"


def _get_repo() -> GraphRepository:
    """Get repository for current directory."""
    settings = MetricsSettings.from_env(Path.cwd())
    if not settings.db_path.exists():
        raise FileNotFoundError(
            f"No codemeter index found. Run 'codemeter backfill .' first.\n"
            f"Expected: {settings.db_path}"
        )
    return GraphRepository(settings.db_path)


@server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="metrics_file",
            description=(
                "Get precomputed metrics for a file: lines of code, symbol count, "
                "cross-file fan-in/fan-out and a weighted complexity score. "
                "Optionally include per-symbol metrics."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "File path as it was indexed",
                    },
                    "include_symbols": {
                        "type": "boolean",
                        "description": "Also return metrics for every symbol in the file",
                        "default": False,
                    },
                },
                "required": ["path"],
            },
        ),
        Tool(
            name="metrics_symbol",
            description=(
                "Get precomputed metrics for one symbol: lines of code, fan-in, fan-out "
                "and cyclomatic complexity (currently a placeholder value)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "symbol_id": {
                        "type": "integer",
                        "description": "Symbol ID",
                    },
                },
                "required": ["symbol_id"],
            },
        ),
        Tool(
            name="metrics_hotspots",
            description=(
                "List the files with the highest complexity score, optionally filtered by "
                "minimum lines of code, fan-in or fan-out."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {"type": "integer", "description": "Maximum files (default: 20)"},
                    "min_loc": {"type": "integer", "description": "Minimum lines of code"},
                    "min_fan_in": {"type": "integer", "description": "Minimum fan-in"},
                    "min_fan_out": {"type": "integer", "description": "Minimum fan-out"},
                },
            },
        ),
        Tool(
            name="metrics_stats",
            description="Get statistics about the indexed graph and its metrics tables.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
    ]


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "metrics_file":
            result = _handle_file(arguments["path"], arguments.get("include_symbols", False))
        elif name == "metrics_symbol":
            result = _handle_symbol(int(arguments["symbol_id"]))
        elif name == "metrics_hotspots":
            result = _handle_hotspots(
                arguments.get("limit"),
                arguments.get("min_loc"),
                arguments.get("min_fan_in"),
                arguments.get("min_fan_out"),
            )
        elif name == "metrics_stats":
            result = _handle_stats()
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except (FileNotFoundError, CodemeterError, KeyError, ValueError) as e:
        log.warning("Tool %s failed: %s", name, e)
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]


def _handle_file(path: str, include_symbols: bool) -> dict[str, Any]:
    """Handle metrics_file tool."""
    with _get_repo() as repo:
        row = repo.metrics.get_file_metrics(Path(path))
        if row is None:
            return {"error": f"File '{path}' {_NOT_METERED}", "file": None}

        result: dict[str, Any] = {"file": row.to_dict()}
        if include_symbols:
            result["symbols"] = [s.to_dict() for s in repo.metrics.list_symbol_metrics(Path(path))]
        return result


def _handle_symbol(symbol_id: int) -> dict[str, Any]:
    """Handle metrics_symbol tool."""
    with _get_repo() as repo:
        row = repo.metrics.get_symbol_metrics(symbol_id)
        if row is None:
            return {"error": f"Symbol {symbol_id} {_NOT_METERED}", "symbol": None}
        return {"symbol": row.to_dict()}


def _handle_hotspots(
    limit: int | None,
    min_loc: int | None,
    min_fan_in: int | None,
    min_fan_out: int | None,
) -> dict[str, Any]:
    """Handle metrics_hotspots tool."""
    settings = MetricsSettings.from_env(Path.cwd())
    with _get_repo() as repo:
        rows = repo.metrics.get_hotspots(
            limit=limit or settings.hotspot_limit,
            min_loc=min_loc,
            min_fan_in=min_fan_in,
            min_fan_out=min_fan_out,
        )
        return {"results": [r.to_dict() for r in rows]}


def _handle_stats() -> dict[str, Any]:
    """Handle metrics_stats tool."""
    with _get_repo() as repo:
        stats = repo.get_stats()
        return {
            "files": stats["files"],
            "symbols": stats["symbols"],
            "edges": stats["edges"],
            "file_metrics": stats["file_metrics"],
            "symbol_metrics": stats["symbol_metrics"],
            "last_indexed": str(stats["last_indexed"]) if stats["last_indexed"] else None,
        }


async def serve() -> None:
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
