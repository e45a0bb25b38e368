# chuk_rag_session/models/turn_log.py
"""
Append-only turn log with two-phase commit.

A user turn is written as a tentative entry when a message is sent. When the
assistant reply has fully streamed, the tentative entry is confirmed together
with the reply; on failure it is marked rolled back. Entries are never
removed, so ``committed()`` after any call resolves contains only complete
exchanges, and the log still shows what was attempted.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, PrivateAttr

from chuk_rag_session.models.turn import Turn


class EntryStatus(str, Enum):
    TENTATIVE = "tentative"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class LogEntry(BaseModel):
    """A single log record."""

    seq: int
    turn: Turn
    status: EntryStatus = EntryStatus.TENTATIVE
    group: int = Field(default=0, description="Sequence number of the entry that opened the exchange")


class TurnLog(BaseModel):
    """Append-only history of turns; at most one exchange is tentative at a time."""

    _entries: list[LogEntry] = PrivateAttr(default_factory=list)
    _pending: int | None = PrivateAttr(default=None)

    def begin(self, turn: Turn) -> int:
        """Record a tentative turn and return its sequence number."""
        if self._pending is not None:
            raise RuntimeError(f"Exchange {self._pending} is still pending")
        seq = len(self._entries)
        self._entries.append(LogEntry(seq=seq, turn=turn, group=seq))
        self._pending = seq
        return seq

    def commit(self, seq: int, *replies: Turn) -> None:
        """Confirm the pending exchange, appending any reply turns as committed."""
        self._check_pending(seq)
        self._entries[seq].status = EntryStatus.COMMITTED
        for reply in replies:
            self._entries.append(
                LogEntry(
                    seq=len(self._entries),
                    turn=reply,
                    status=EntryStatus.COMMITTED,
                    group=seq,
                )
            )
        self._pending = None

    def rollback(self, seq: int) -> None:
        """Discard the pending exchange."""
        self._check_pending(seq)
        self._entries[seq].status = EntryStatus.ROLLED_BACK
        self._pending = None

    def _check_pending(self, seq: int) -> None:
        if self._pending != seq:
            raise RuntimeError(f"Exchange {seq} is not the pending exchange ({self._pending})")

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def pending(self) -> Turn | None:
        """The tentative turn, if an exchange is in flight."""
        if self._pending is None:
            return None
        return self._entries[self._pending].turn

    def committed(self) -> list[Turn]:
        """Committed turns in order."""
        return [e.turn for e in self._entries if e.status == EntryStatus.COMMITTED]

    def visible_length(self) -> int:
        """Committed turns plus the tentative one, if any."""
        return len(self) + (1 if self._pending is not None else 0)

    def entries(self) -> list[LogEntry]:
        """Every record, including rolled-back attempts."""
        return [e.model_copy() for e in self._entries]

    def reset(self, turns: list[Turn] | None = None) -> None:
        """Replace the log with already-committed turns."""
        self._entries = []
        self._pending = None
        for turn in turns or []:
            seq = len(self._entries)
            self._entries.append(LogEntry(seq=seq, turn=turn, status=EntryStatus.COMMITTED, group=seq))

    def __len__(self) -> int:
        return sum(1 for e in self._entries if e.status == EntryStatus.COMMITTED)
