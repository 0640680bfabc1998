"""Leaderboard reducer: folds run outcomes into the durable table.

Every `apply` is a full load, fold and replace cycle held under one
`asyncio.Lock`, so concurrent outcomes for any players are serialized and
none is lost. Blocking file I/O is offloaded with `asyncio.to_thread`.
"""

import asyncio
import logging
from pathlib import Path

from labyrinth.leaderboard.exceptions import LeaderboardWriteError
from labyrinth.leaderboard.models import (
    LeaderboardSnapshot,
    PlayerRecord,
    RunOutcome,
    RunResult,
)
from labyrinth.leaderboard.snapshot import DEFAULT_TOP_N, build_snapshot
from labyrinth.storage.leaderboard import load_records, save_records

logger = logging.getLogger(__name__)

def fold_outcome(records: list[PlayerRecord], outcome: RunOutcome) -> PlayerRecord:
    """Apply one outcome to an in-memory record set.

    Clears every improvement flag, then finds or appends the player's record
    and updates it. Returns the player's record.
    """
    for record in records:
        record.improved_on_last_update = False

    record = next((r for r in records if r.player_id == outcome.player_id), None)
    if record is None:
        record = PlayerRecord(
            player_id=outcome.player_id,
            display_name=outcome.display_name,
        )
        records.append(record)

    if outcome.result == RunResult.SUCCESS:
        record.success_count += 1
        if outcome.elapsed_millis < record.best_time_millis:
            record.best_time_millis = outcome.elapsed_millis
            record.display_name = outcome.display_name
            record.improved_on_last_update = True
    else:
        record.defeat_count += 1

    return record

class LeaderboardReducer:
    """Single writer of the leaderboard table."""

    def __init__(self, path: Path, top_n: int = DEFAULT_TOP_N):
        self.path = path
        self.top_n = top_n
        self._lock = asyncio.Lock()

    async def apply(self, outcome: RunOutcome) -> list[PlayerRecord]:
        """Fold one outcome into the table and persist it.

        Raises:
            LeaderboardWriteError: If the table could not be replaced. The
                previous table is left intact.
        """
        async with self._lock:
            records = await asyncio.to_thread(load_records, self.path)
            record = fold_outcome(records, outcome)

            try:
                await asyncio.to_thread(save_records, records, self.path)
            except Exception as e:
                raise LeaderboardWriteError(
                    f"Failed to persist outcome for {outcome.player_id}: {e}",
                    path=self.path,
                ) from e

            logger.info(
                f"Recorded {outcome.result.value} for {outcome.player_id} "
                f"(best={record.best_time_millis}, "
                f"improved={record.improved_on_last_update})"
            )
            return records

    async def records(self) -> list[PlayerRecord]:
        async with self._lock:
            return await asyncio.to_thread(load_records, self.path)

    async def snapshot(self) -> LeaderboardSnapshot:
        return build_snapshot(await self.records(), self.top_n)
