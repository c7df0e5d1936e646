"""Replay protection for EventSub callbacks.

Message ids: Twitch delivers each message at least once; ids already seen are
reported so the caller can acknowledge without reprocessing.
Timestamps: messages older than a configurable window (default: 600s) are
rejected, as are timestamps that cannot be parsed.

Uses SQLite for persistence across restarts.
"""

from __future__ import annotations

import sqlite3
import time
from datetime import datetime

_DEFAULT_WINDOW_SECONDS = 600


def parse_timestamp(value: str) -> float:
    """Parse an RFC3339 EventSub timestamp into epoch seconds.

    Twitch sends nanosecond precision (``2023-07-19T14:56:51.634234626Z``);
    digits past microseconds are dropped.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    if "." in text:
        head, _, rest = text.partition(".")
        digits = rest
        offset = ""
        for i, ch in enumerate(rest):
            if not ch.isdigit():
                digits, offset = rest[:i], rest[i:]
                break
        text = f"{head}.{digits[:6]}{offset}"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp has no UTC offset: {value!r}")
    return parsed.timestamp()


class ReplayProtection:
    """Prevents EventSub replays using SQLite-backed state."""

    def __init__(
        self,
        db_path: str,
        window_seconds: int = _DEFAULT_WINDOW_SECONDS,
    ) -> None:
        self._db_path = db_path
        self._window_seconds = window_seconds
        self._conn = sqlite3.connect(db_path)
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS eventsub_messages (
                message_id TEXT PRIMARY KEY,
                seen_at REAL NOT NULL
            )"""
        )
        self._conn.commit()

    def check_message_id(self, message_id: str) -> bool:
        """Return True if message_id has not been seen before, recording it."""
        self.prune()
        cursor = self._conn.execute(
            "INSERT OR IGNORE INTO eventsub_messages (message_id, seen_at) VALUES (?, ?)",
            (message_id, time.time()),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    def check_timestamp(self, timestamp: str) -> bool:
        """Return True if the message is within the acceptable age window."""
        try:
            sent_at = parse_timestamp(timestamp)
        except ValueError:
            return False
        return time.time() - sent_at <= self._window_seconds

    def prune(self) -> int:
        """Forget ids older than the window. Callers must run check_timestamp first."""
        cutoff = time.time() - self._window_seconds
        cursor = self._conn.execute(
            "DELETE FROM eventsub_messages WHERE seen_at < ?", (cutoff,),
        )
        self._conn.commit()
        return cursor.rowcount

    def forget(self, message_id: str) -> None:
        """Drop a recorded id so a redelivery of that message is processed."""
        self._conn.execute(
            "DELETE FROM eventsub_messages WHERE message_id = ?", (message_id,),
        )
        self._conn.commit()
