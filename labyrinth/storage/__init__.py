"""Storage layer for Labyrinth - file-based persistence.

The leaderboard table is the one shared durable resource. Only the
leaderboard reducer writes it.
"""

from .leaderboard import (
    COLUMNS,
    get_leaderboard_path,
    initialize_store,
    load_records,
    save_records,
)

__all__ = [
    "COLUMNS",
    "get_leaderboard_path",
    "initialize_store",
    "load_records",
    "save_records",
]
