# tests/test_turn_log.py
"""
Tests for the two-phase turn log.
"""

import pytest

from chuk_rag_session.models import EntryStatus, Turn, TurnLog


class TestTurnLog:
    def test_commit_appends_exchange(self):
        log = TurnLog()
        seq = log.begin(Turn.user("hi"))
        assert log.has_pending
        assert log.pending() == Turn.user("hi")
        assert log.committed() == []

        log.commit(seq, Turn.assistant("hello"))

        assert not log.has_pending
        assert log.committed() == [Turn.user("hi"), Turn.assistant("hello")]
        assert len(log) == 2

    def test_rollback_keeps_record(self):
        log = TurnLog()
        seq = log.begin(Turn.user("hi"))
        log.rollback(seq)

        assert log.committed() == []
        assert len(log) == 0
        entries = log.entries()
        assert len(entries) == 1
        assert entries[0].status == EntryStatus.ROLLED_BACK

    def test_one_pending_exchange(self):
        log = TurnLog()
        log.begin(Turn.user("one"))
        with pytest.raises(RuntimeError):
            log.begin(Turn.user("two"))

    def test_commit_wrong_seq(self):
        log = TurnLog()
        log.begin(Turn.user("one"))
        with pytest.raises(RuntimeError):
            log.commit(99)

    def test_visible_length(self):
        log = TurnLog()
        seq = log.begin(Turn.user("one"))
        assert log.visible_length() == 1
        log.commit(seq, Turn.assistant("a"))
        assert log.visible_length() == 2
        log.begin(Turn.user("two"))
        assert log.visible_length() == 3

    def test_groups_link_reply_to_question(self):
        log = TurnLog()
        log.commit(log.begin(Turn.user("one")), Turn.assistant("a"))
        seq = log.begin(Turn.user("two"))
        log.rollback(seq)
        log.commit(log.begin(Turn.user("three")), Turn.assistant("b"))

        entries = log.entries()
        assert [e.group for e in entries] == [0, 0, 2, 3, 3]
        assert [t.content for t in log.committed()] == ["one", "a", "three", "b"]

    def test_reset(self):
        log = TurnLog()
        log.begin(Turn.user("dropped"))
        log.reset([Turn.user("q"), Turn.assistant("a")])
        assert not log.has_pending
        assert log.committed() == [Turn.user("q"), Turn.assistant("a")]

    def test_entries_are_copies(self):
        log = TurnLog()
        log.commit(log.begin(Turn.user("q")), Turn.assistant("a"))
        log.entries()[0].status = EntryStatus.ROLLED_BACK
        assert len(log) == 2

    def test_turn_message_shape(self):
        assert Turn.assistant("x").as_message() == {"role": "assistant", "content": "x"}
