"""Leaderboard table persistence with atomic writes.

The table is a YAML document holding a fixed column list and one row per
player. It is always read and written whole; `best_time_ms: null` marks a
player with no successful run yet.
"""

import logging
import math
import shutil
import tempfile
from pathlib import Path
from typing import Any

import yaml

from labyrinth.config import get_settings
from labyrinth.leaderboard.models import PlayerRecord

logger = logging.getLogger(__name__)

COLUMNS = [
    "player_id",
    "display_name",
    "best_time_ms",
    "successes",
    "defeats",
    "has_improved",
]


# ============================================================================
# Helper Functions
# ============================================================================


def get_leaderboard_path() -> Path:
    """Get the path to the leaderboard table from settings."""
    return get_settings().leaderboard_path


def _to_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _to_best_time(value: Any) -> float:
    if value is None or value == "":
        return math.inf
    try:
        best = float(value)
    except (TypeError, ValueError, OverflowError):
        return math.inf
    if math.isnan(best) or best < 0:
        return math.inf
    return best


def _to_flag(value: Any) -> bool:
    return value is True or str(value).strip().lower() == "true"


def _row_to_record(row: dict[str, Any]) -> PlayerRecord | None:
    player_id = row.get("player_id")
    player_id = "" if player_id is None else str(player_id).strip()
    if not player_id:
        return None

    display_name = row.get("display_name")
    return PlayerRecord(
        player_id=player_id,
        display_name="" if display_name is None else str(display_name),
        best_time_millis=_to_best_time(row.get("best_time_ms")),
        success_count=_to_int(row.get("successes")),
        defeat_count=_to_int(row.get("defeats")),
        improved_on_last_update=_to_flag(row.get("has_improved")),
    )


def _record_to_row(record: PlayerRecord) -> dict[str, Any]:
    best = record.best_time_millis
    if math.isfinite(best):
        best = int(best) if float(best).is_integer() else best
    else:
        best = None

    return {
        "player_id": record.player_id,
        "display_name": record.display_name,
        "best_time_ms": best,
        "successes": record.success_count,
        "defeats": record.defeat_count,
        "has_improved": record.improved_on_last_update,
    }


# ============================================================================
# Public API
# ============================================================================


def load_records(path: Path | None = None) -> list[PlayerRecord]:
    """Load every player record.

    A missing, empty, unreadable or malformed table yields an empty list;
    the next save recreates a valid file.
    """
    path = path or get_leaderboard_path()

    if not path.exists() or path.stat().st_size == 0:
        logger.info(f"Leaderboard file not found or empty: {path}. Starting empty.")
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.error(f"Failed to load leaderboard: {e}")
        return []

    if not isinstance(raw_data, dict):
        logger.warning(f"Unexpected leaderboard layout in {path}. Starting empty.")
        return []

    rows = raw_data.get("rows") or []
    if not isinstance(rows, list):
        logger.warning(f"Leaderboard rows are not a list in {path}. Starting empty.")
        return []

    records: list[PlayerRecord] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        record = _row_to_record(row)
        if record is not None:
            records.append(record)

    logger.debug(f"Loaded {len(records)} leaderboard records from {path}")
    return records


def save_records(records: list[PlayerRecord], path: Path | None = None) -> None:
    """Atomically replace the whole leaderboard table.

    Writes to a temporary file in the same directory and renames it over
    the table, so a crash mid-write leaves the previous table intact.
    """
    path = path or get_leaderboard_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    document = {
        "columns": COLUMNS,
        "rows": [_record_to_row(record) for record in records],
    }

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            delete=False,
            suffix=".yaml",
            encoding="utf-8",
        ) as temp_file:
            temp_path = Path(temp_file.name)
            yaml.safe_dump(
                document,
                temp_file,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )

        shutil.move(str(temp_path), str(path))
        logger.debug(f"Saved {len(records)} leaderboard records to {path}")

    except Exception as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to save leaderboard: {e}")
        raise


def initialize_store(path: Path | None = None) -> bool:
    """Create an empty table if none exists. Returns True when created."""
    path = path or get_leaderboard_path()
    if path.exists():
        logger.info(f"Leaderboard file found at: {path}")
        return False

    logger.info("Leaderboard file not found. Creating a new one...")
    save_records([], path)
    logger.info(f"Created leaderboard at: {path}")
    return True
