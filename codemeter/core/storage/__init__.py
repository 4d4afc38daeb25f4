"""
Storage layer: SQLite persistence for the code graph and its metrics.

This module provides database operations split by concern:

Components:
    - GraphRepository: Main facade that coordinates all storage
    - SymbolStorage: CRUD operations for symbols table
    - EdgeStorage: CRUD operations for edges table
    - FileStorage: Track indexed files and their hashes
    - MetricsStorage: Whole-row upserts, deletes and reads of precomputed metrics

Database Schema:
    symbols: id, name, qualified_name, file, line, end_line, byte_start, byte_end,
             type, parent_id
    edges: id, caller_id, callee_id, call_line, call_type
    files: path, hash, indexed_at
    file_metrics: file_path, symbol_count, loc, estimated_loc, fan_in, fan_out,
                  complexity_score, last_updated
    symbol_metrics: symbol_id, symbol_name, kind, file_path, loc, estimated_loc,
                    fan_in, fan_out, cyclomatic_complexity, last_updated

The database is stored at .codemeter/index.db relative to the project root.
"""

from codemeter.core.storage.edges import EdgeStorage
from codemeter.core.storage.files import FileStorage, compute_content_hash, compute_file_hash
from codemeter.core.storage.metrics import MetricsStorage
from codemeter.core.storage.repository import GraphRepository, get_default_db_path
from codemeter.core.storage.symbols import SymbolStorage

__all__ = [
    "GraphRepository",
    "SymbolStorage",
    "EdgeStorage",
    "FileStorage",
    "MetricsStorage",
    "compute_content_hash",
    "compute_file_hash",
    "get_default_db_path",
]
