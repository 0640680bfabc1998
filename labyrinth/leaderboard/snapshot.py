"""Ranked leaderboard view and aggregate statistics.

Snapshots are derived from the full record set on every read and are never
persisted.
"""

import math

from labyrinth.leaderboard.models import (
    LeaderboardEntry,
    LeaderboardSnapshot,
    LeaderboardStats,
    PlayerRecord,
)

DEFAULT_TOP_N = 10
NOT_AVAILABLE = "N/A"


def format_time(millis: float | None) -> str:
    """Render milliseconds as MM:SS:mmm, or N/A for a missing time."""
    if millis is None or not math.isfinite(millis) or millis < 0:
        return NOT_AVAILABLE

    total = int(millis)
    minutes = total // 60000
    seconds = (total % 60000) // 1000
    ms = total % 1000
    return f"{minutes:02d}:{seconds:02d}:{ms:03d}"


def format_seconds(millis: float | None) -> str:
    """Render milliseconds as seconds with three decimals (12.345)."""
    if millis is None or not math.isfinite(millis) or millis < 0:
        return NOT_AVAILABLE
    return f"{millis / 1000:.3f}"


def rank_records(records: list[PlayerRecord]) -> list[PlayerRecord]:
    """Records with a success, fastest first. Ties keep table order."""
    return sorted(
        (record for record in records if record.has_success),
        key=lambda record: record.best_time_millis,
    )


def compute_stats(records: list[PlayerRecord]) -> LeaderboardStats:
    winners = [record for record in records if record.has_success]
    successes = sum(record.success_count for record in records)
    attempts = sum(record.attempts for record in records)

    record_time = min((r.best_time_millis for r in winners), default=None)
    average_time = (
        sum(r.best_time_millis for r in winners) / len(winners) if winners else None
    )
    success_rate = round(successes / attempts * 100) if attempts else 0

    return LeaderboardStats(
        record_time_millis=record_time,
        average_time_millis=average_time,
        total_players=len(records),
        success_rate=success_rate,
    )


def build_snapshot(
    records: list[PlayerRecord], top_n: int = DEFAULT_TOP_N
) -> LeaderboardSnapshot:
    ranked = rank_records(records)
    entries = [
        LeaderboardEntry(
            rank=position,
            player_id=record.player_id,
            display_name=record.display_name,
            best_time_millis=record.best_time_millis,
            improved_on_last_update=record.improved_on_last_update,
        )
        for position, record in enumerate(ranked[: max(top_n, 0)], start=1)
    ]

    return LeaderboardSnapshot(
        entries=entries,
        stats=compute_stats(records),
        ranked_players=len(ranked),
    )
