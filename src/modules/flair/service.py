"""
Flair Service
=============

Purpose
-------
Turn ledger history into flair (achievement role) state: which flairs a user
holds, when each was earned, and which were newly earned on a scored day.

Domain
------
- Evaluate role grants for one scored day and publish them as
  ``flair.granted`` events
- Report a user's flairs, cumulative score and next tier
- Report a user's streaks per category

Design Notes
------------
- Role grants are computed, never stored. A flair whose earned-date equals
  the scored day is a grant for that day, so re-evaluating the same day
  yields the same grants.
- Only users who appear in the scored day can earn anything on it (scores
  only move on days a user appears), so evaluation is limited to them.
- The gateway layer subscribes to ``flair.granted`` and performs the actual
  role assignment and announcement.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.modules.flair.evaluator import (
    StreakCategory,
    StreakResult,
    compute_all_streaks,
    compute_flair_dates,
    flairs_earned_on,
)
from src.modules.flair.tiers import FlairTable
from src.modules.scoring.calculator import accumulate_scores
from src.modules.scoring.point_table import PointTable
from src.modules.shared.base_service import BaseService
from src.modules.shared.dates import parse_date_key

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.ledger.service import DayLedgerService


FLAIR_GRANTED_EVENT = "flair.granted"


@dataclass(frozen=True)
class RoleGrantEvent:
    server_id: str
    user_id: str
    tier_key: str
    tier_name: str
    role_id: int
    date_earned: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "server_id": self.server_id,
            "user_id": self.user_id,
            "tier_key": self.tier_key,
            "tier_name": self.tier_name,
            "role_id": self.role_id,
            "date_earned": self.date_earned,
        }


class FlairService(BaseService):
    """
    Service for flair grants and per-user achievement queries.

    Public Methods
    --------------
    - evaluate_role_grants() -> Flairs newly earned on a scored day
    - get_user_flairs() -> Earned flairs, score and next tier for a user
    - get_user_streaks() -> Active streaks per category for a user
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger_service: DayLedgerService,
        point_table: Optional[PointTable] = None,
        flair_table: Optional[FlairTable] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._ledger = ledger_service
        self._points = point_table or PointTable.from_config(config_manager)
        self.flair_table = flair_table or FlairTable.from_config(config_manager)

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def evaluate_role_grants(
        self, server_id: str, date_key: str, publish: bool = True
    ) -> List[RoleGrantEvent]:
        """
        Flairs earned on `date_key`, one event per (user, flair).

        Args:
            server_id: Discord guild ID
            date_key: The day that was just scored (MM-DD-YYYY)
            publish: Publish each grant as a ``flair.granted`` event

        Returns:
            RoleGrantEvents ordered by user, then tier order
        """
        server_id = str(server_id)
        parse_date_key(date_key)

        days = await self._ledger.list_days(server_id, up_to=date_key)
        scored_day = next((d for d in days if d.date_key == date_key), None)
        if scored_day is None:
            return []

        candidates = set(scored_day.first_user_ids())
        for author in (scored_day.last_author_id, scored_day.second_last_author_id):
            if author:
                candidates.add(author)

        grants: List[RoleGrantEvent] = []
        for user_id in sorted(candidates):
            records = compute_flair_dates(days, user_id, self._points, self.flair_table)
            for record in flairs_earned_on(records, date_key):
                grants.append(
                    RoleGrantEvent(
                        server_id=server_id,
                        user_id=user_id,
                        tier_key=record.tier.key,
                        tier_name=record.tier.name,
                        role_id=record.tier.role_id,
                        date_earned=date_key,
                    )
                )

        self.log_operation(
            "evaluate_role_grants",
            server_id=server_id,
            date_key=date_key,
            candidates=len(candidates),
            grants=len(grants),
        )

        if publish:
            for grant in grants:
                await self.emit_event(FLAIR_GRANTED_EVENT, grant.to_payload())
        return grants

    async def get_user_flairs(self, server_id: str, user_id: str) -> Dict[str, Any]:
        """
        A user's flair standing.

        Returns:
            ``{records, score, highest_tier, next_tier}``; records is empty
            for a user who never posted
        """
        user_id = str(user_id)
        days = await self._ledger.list_days(str(server_id))
        records = compute_flair_dates(days, user_id, self._points, self.flair_table)
        score = accumulate_scores(days, self._points).get(user_id, 0)

        earned_keys = {r.tier.key for r in records}
        highest = next(
            (t for t in reversed(self.flair_table.point_tiers) if t.key in earned_keys),
            None,
        )
        return {
            "records": records,
            "score": score,
            "highest_tier": highest,
            "next_tier": self.flair_table.next_tier(score),
        }

    async def get_user_streaks(
        self, server_id: str, user_id: str
    ) -> Dict[StreakCategory, StreakResult]:
        days = await self._ledger.list_days(str(server_id))
        return compute_all_streaks(days, str(user_id))
