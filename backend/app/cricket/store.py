from __future__ import annotations

import logging
from threading import RLock
from typing import Mapping, Sequence

from app.cricket.engine import CricketMatch
from app.cricket.ledger import Player
from app.cricket.summary import MatchSummary
from app.cricket.targets import MatchRules, MatchVariant, Target

logger = logging.getLogger(__name__)


class InMemoryMatchStore:
    """
    Minimal in-memory store for the active match and the summaries of
    finished ones. It doubles as the match archiver (best-effort local save).
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._match: CricketMatch | None = None
        self._archived: dict[str, MatchSummary] = {}

    @property
    def lock(self) -> RLock:
        return self._lock

    def clear(self) -> None:
        with self._lock:
            self._match = None
            self._archived.clear()

    def start_match(
        self,
        *,
        variant: MatchVariant,
        players: Sequence[Player],
        rules: MatchRules,
        ko_numbers: Mapping[str, Target] | None = None,
        auto_advance: bool = True,
    ) -> CricketMatch:
        match = CricketMatch.initialize(
            variant,
            players,
            rules,
            ko_numbers=ko_numbers,
            archiver=self,
            auto_advance=auto_advance,
        )
        with self._lock:
            self._match = match
        return match

    def match(self) -> CricketMatch | None:
        with self._lock:
            return self._match

    # --- MatchArchiver ---
    def archive(self, summary: MatchSummary) -> None:
        with self._lock:
            self._archived[summary.match_id] = summary
        logger.info("Archived match %s (winner %s)", summary.match_id, summary.winner_id)

    def archived(self, match_id: str) -> MatchSummary | None:
        with self._lock:
            return self._archived.get(match_id)


_STORE: InMemoryMatchStore | None = None


def get_store() -> InMemoryMatchStore:
    global _STORE
    if _STORE is None:
        _STORE = InMemoryMatchStore()
    return _STORE
