#!/usr/bin/env python3
"""
Signal History
Turns the stream of signal snapshots into discrete events and keeps an
in-memory WIN/LOSS record of them.
"""

import logging
from datetime import datetime

import pytz

from .models import HistoryEntry, Outcome, SignalType

logger = logging.getLogger("prisma_vision.ledger")


class SignalEventTracker:
    def __init__(self, min_gap_ms=0):
        """
        Detect new signal events by their timestamp change token.

        Args:
            min_gap_ms (int): ignore events closer than this to the previous reported one
        """
        self.min_gap_ms = min_gap_ms
        self.last_timestamp = 0
        self.last_event_timestamp = None

    def observe(self, signal):
        """Return True only for a new (changed timestamp) non-NEUTRAL signal."""
        if signal.timestamp == self.last_timestamp:
            return False
        self.last_timestamp = signal.timestamp

        if signal.type is SignalType.NEUTRAL:
            return False
        if (self.last_event_timestamp is not None
                and signal.timestamp - self.last_event_timestamp < self.min_gap_ms):
            return False
        self.last_event_timestamp = signal.timestamp
        return True


class SignalLedger:
    def __init__(self, timezone="America/Sao_Paulo"):
        """
        In-memory signal history.

        Args:
            timezone (str): pytz zone used to render entry times
        """
        self.tz = pytz.timezone(timezone)
        self._entries = {}

    @property
    def entries(self):
        """Entries in recording order."""
        return list(self._entries.values())

    def record(self, signal):
        """
        Append a PENDING entry for a signal event.

        Returns:
            HistoryEntry or None: None for NEUTRAL signals or an already recorded timestamp
        """
        if signal.type is SignalType.NEUTRAL or signal.timestamp in self._entries:
            return None

        local_time = datetime.fromtimestamp(signal.timestamp / 1000, tz=self.tz)
        entry = HistoryEntry(
            id=signal.timestamp,
            type=signal.type,
            time=local_time.strftime("%H:%M:%S"),
            method=signal.method,
        )
        self._entries[entry.id] = entry
        logger.info(f"📝 Recorded {entry.type.value} at {entry.time} ({entry.method})")
        return entry

    def mark(self, entry_id, outcome):
        """Set the outcome of an entry. Raises KeyError for unknown ids."""
        if not isinstance(outcome, Outcome):
            outcome = Outcome(outcome)
        entry = self._entries[entry_id]
        entry.result = outcome
        logger.info(f"Entry {entry_id} marked {outcome.value}")
        return entry

    def summary(self):
        wins = sum(1 for e in self._entries.values() if e.result is Outcome.WIN)
        losses = sum(1 for e in self._entries.values() if e.result is Outcome.LOSS)
        total = wins + losses
        return {
            "wins": wins,
            "losses": losses,
            "pending": len(self._entries) - total,
            "total": total,
            "win_rate": round(wins / total * 100) if total else 0,
        }
