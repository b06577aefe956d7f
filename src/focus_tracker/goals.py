"""Daily category goals and the per-day ledger of goals already announced."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .config import DAILY_GOALS, GOALS_NOTIFIED_TODAY, KeyValueStore

logger = logging.getLogger(__name__)


class Goal(BaseModel):
    """Target time per day for one category."""

    category_name: str = Field(alias="categoryName")
    target_ms: int = Field(alias="targetMs", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class _LedgerRecord(BaseModel):
    date: str
    goals: list[str] = Field(default_factory=list)


_GOAL_LIST = TypeAdapter(list[Goal])


def load_goals(store: KeyValueStore) -> list[Goal]:
    """Return the configured goals; missing or malformed JSON means no goals."""
    raw = store.get(DAILY_GOALS)
    if not raw:
        return []
    try:
        return _GOAL_LIST.validate_json(raw)
    except ValidationError as exc:
        logger.warning("Ignoring malformed %s setting: %s", DAILY_GOALS, exc.errors()[0]["msg"])
        return []


def save_goals(store: KeyValueStore, goals: list[Goal]) -> None:
    store.set(DAILY_GOALS, _GOAL_LIST.dump_json(goals, by_alias=True).decode())


class GoalLedger:
    """Categories whose goal was already announced on one local date."""

    def __init__(self, store: KeyValueStore, day: date, categories: Optional[set[str]] = None) -> None:
        self._store = store
        self.day = day
        self.categories: set[str] = set(categories or ())

    @classmethod
    def load(cls, store: KeyValueStore, today: date) -> "GoalLedger":
        """Load today's ledger. A ledger stored for another date loads empty."""
        raw = store.get(GOALS_NOTIFIED_TODAY)
        if not raw:
            return cls(store, today)
        try:
            record = _LedgerRecord.model_validate_json(raw)
        except ValidationError:
            return cls(store, today)
        if record.date != today.isoformat():
            return cls(store, today)
        return cls(store, today, set(record.goals))

    def __contains__(self, category: str) -> bool:
        return category in self.categories

    def mark(self, category: str) -> None:
        """Record ``category`` as announced and persist the ledger."""
        # Re-read so categories written by another writer today are kept.
        current = GoalLedger.load(self._store, self.day)
        self.categories |= current.categories
        self.categories.add(category)
        record = _LedgerRecord(date=self.day.isoformat(), goals=sorted(self.categories))
        self._store.set(GOALS_NOTIFIED_TODAY, record.model_dump_json())
