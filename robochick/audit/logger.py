"""Append-only JSON Lines audit record of webhook outcomes.

Every entry carries ``prev_hash``: the SHA-256 of the line before it in the
same file, or null for the first line. The previous line is read back from
disk under the lock, so several worker processes can share one log without
forking the chain. Rotation moves the full file to ``<name>.1`` and the new
file starts its own chain.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path

from robochick.models import AuditEvent

_TAIL_CHUNK = 4096


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None


def _line_hash(line: str) -> str:
    return hashlib.sha256(line.encode()).hexdigest()


def _read_last_line(path: Path) -> str | None:
    """Return the final non-empty line of ``path`` without reading it whole."""
    if not path.exists():
        return None
    with open(path, "rb") as f:
        end = f.seek(0, os.SEEK_END)
        buf = b""
        pos = end
        while pos > 0:
            step = min(_TAIL_CHUNK, pos)
            pos -= step
            f.seek(pos)
            buf = f.read(step) + buf
            stripped = buf.rstrip(b"\n")
            if b"\n" in stripped:
                return stripped.rsplit(b"\n", 1)[1].decode()
        stripped = buf.rstrip(b"\n")
        return stripped.decode() if stripped else None


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check that each entry's ``prev_hash`` matches the line before it."""
    expected: str | None = None
    with open(log_path) as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.rstrip("\n")
            if not line:
                continue
            if json.loads(line).get("prev_hash") != expected:
                return ChainValidationResult(valid=False, broken_at_line=lineno)
            expected = _line_hash(line)
    return ChainValidationResult(valid=True)


class AuditLogger:
    """Writes AuditEvents for the EventSub dispatcher, one JSON object per line."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._lock_path = self.log_path.with_name(f".{self.log_path.name}.lock")

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        return cls(
            log_path=log_path,
            max_bytes=int(os.environ.get("AUDIT_LOG_MAX_BYTES", "10485760")),
            backup_count=int(os.environ.get("AUDIT_LOG_BACKUP_COUNT", "5")),
        )

    def backups(self) -> list[Path]:
        """Rotated files that exist, newest first."""
        candidates = (
            self.log_path.with_name(f"{self.log_path.name}.{i}")
            for i in range(1, self._backup_count + 1)
        )
        return [p for p in candidates if p.exists()]

    def _rotate_if_full(self) -> None:
        try:
            size = self.log_path.stat().st_size
        except FileNotFoundError:
            return
        if size < self._max_bytes:
            return
        # Shift .N-1 -> .N down to .1 -> .2; whatever sat at .N is overwritten.
        for i in range(self._backup_count - 1, 0, -1):
            older = self.log_path.with_name(f"{self.log_path.name}.{i}")
            if older.exists():
                older.replace(self.log_path.with_name(f"{self.log_path.name}.{i + 1}"))
        self.log_path.replace(self.log_path.with_name(f"{self.log_path.name}.1"))

    def log(self, event: AuditEvent) -> None:
        record = json.loads(event.model_dump_json())
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "w") as lock:
            fcntl.flock(lock, fcntl.LOCK_EX)
            try:
                self._rotate_if_full()
                previous = _read_last_line(self.log_path)
                record["prev_hash"] = _line_hash(previous) if previous else None
                with open(self.log_path, "a") as f:
                    f.write(json.dumps(record, separators=(",", ":")) + "\n")
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)
