from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sportiq.tools.knowledge_store import Team
from sportiq.tools.team_resolution_metrics import (
    TeamResolutionMetrics,
    get_team_resolution_metrics,
)

logger = logging.getLogger(__name__)


class TeamResolver:
    """Resolve a free-text question to a canonical team name.

    A team matches when its canonical name or one of its aliases appears as a
    substring of the lower-cased question. Teams are tested in seed order and
    the first match wins.
    """

    def __init__(
        self,
        teams: Iterable[Team] = (),
        metrics: Optional[TeamResolutionMetrics] = None,
    ) -> None:
        self.team_resolution_metrics = metrics or get_team_resolution_metrics()
        self.teams: List[Team] = []
        self.sync_from_team_rows(teams)

    def sync_from_team_rows(self, rows: Iterable[Team]) -> None:
        """Replace the known teams; names and aliases are compared lower-cased."""
        self.teams = [
            Team(
                name=row.name.strip().lower(),
                alias1=row.alias1.strip().lower() if row.alias1 else None,
                alias2=row.alias2.strip().lower() if row.alias2 else None,
            )
            for row in rows
        ]

    def resolve(self, text: str) -> Optional[str]:
        lowered = (text or "").lower()
        found: Optional[str] = None
        for team in self.teams:
            if any(name in lowered for name in team.names):
                found = team.name
                break

        self.team_resolution_metrics.record_resolution_event(team=found)
        self.team_resolution_metrics.maybe_log(logger, "TeamResolver.resolve")
        return found
