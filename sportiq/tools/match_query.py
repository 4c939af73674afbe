"""
의도별 경기 데이터 조회 도구입니다.

이 도구는 지식 저장소(matches, goals, tournaments, teams)를 조회하여
의도(intent)에 맞는 답변 문자열을 만듭니다.

원칙:
1. 팀이 필요한 의도인데 팀을 찾지 못하면 조회 없이 되묻는 문장을 반환
2. 조회 결과가 없으면 빈 문자열 대신 의도별 "찾을 수 없음" 문장을 반환
3. 추측이나 해석 없이 실제 DB 데이터만 반환
"""

import logging
from datetime import date
from typing import Callable, Dict, Optional, Sequence

from .knowledge_store import Goal, KnowledgeStore, Match, ScorerTally, Tournament
from .team_resolution_metrics import TeamResolutionMetrics, get_team_resolution_metrics
from .team_resolver import TeamResolver

logger = logging.getLogger(__name__)

TOURNAMENT_LIMIT = 5

HELP_REPLY = (
    "I can answer: today's fixtures, latest score, goal scorers, stadium and city, "
    "sport type, upcoming, last match, top scorer, and tournament info."
)
UNRECOGNIZED_INTENT_REPLY = "Sorry, I could not map that to one of my 10 questions."
STADIUM_CLARIFICATION = (
    "Which team or match do you mean? Try: where was Berlin United's last match?"
)

NOT_FOUND_REPLIES: Dict[str, str] = {
    "today_fixtures": "No fixtures today in the mock data.",
    "latest_score": "No recent match found.",
    "goal_scorers": "No goal data found.",
    "stadium_location": "No stadium info found.",
    "sport_type_for_match": "No sport type found.",
    "upcoming_for_team": "No upcoming match found.",
    "last_match_for_team": "No last match found.",
    "top_scorer_team": "No scorers found.",
    "tournament_info": "No tournament info found.",
}

MATCH_COLUMNS = (
    "m.id, m.date, m.kickoff, m.home, m.away, m.stadium, m.city, m.sport, "
    "m.home_goals, m.away_goals, m.is_today"
)
TEAM_FILTER = "(lower(m.home) = ? OR lower(m.away) = ?)"


class MatchQueryTool:
    """
    의도 → 조회 매핑 도구

    answer()는 먼저 질문에서 팀을 찾은 뒤 의도별 핸들러로 분기합니다.
    점수/최근 경기 조회는 기준일(reference date) 이전에 치러진 경기만 봅니다.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        resolver: Optional[TeamResolver] = None,
        reference_date: Optional[date] = None,
        metrics: Optional[TeamResolutionMetrics] = None,
    ):
        self.store = store
        self.metrics = metrics or get_team_resolution_metrics()
        self.resolver = resolver or TeamResolver(store.teams(), metrics=self.metrics)
        self.reference_date = self._resolve_reference_date(reference_date)

        self._handlers: Dict[str, Callable[[Optional[str]], str]] = {
            "today_fixtures": self.today_fixtures,
            "latest_score": self.latest_score,
            "goal_scorers": self.goal_scorers,
            "stadium_location": self.stadium_location,
            "sport_type_for_match": self.sport_type_for_match,
            "upcoming_for_team": self.upcoming_for_team,
            "last_match_for_team": self.last_match_for_team,
            "top_scorer_team": self.top_scorer_team,
            "tournament_info": self.tournament_info,
            "help": self.help,
        }

    def _resolve_reference_date(self, configured: Optional[date]) -> str:
        if configured is not None:
            return configured.isoformat()
        seeded = self.store.today_reference_date()
        if seeded:
            return seeded
        return date.today().isoformat()

    def answer(self, intent: str, text: str) -> str:
        handler = self._handlers.get(intent)
        if handler is None:
            logger.info("[MatchQuery] no query mapping for intent=%s", intent)
            return UNRECOGNIZED_INTENT_REPLY
        team = self.resolver.resolve(text)
        logger.debug("[MatchQuery] intent=%s team=%s", intent, team)
        return handler(team)

    def _reply(self, intent: str, lines: Sequence[str]) -> str:
        self.metrics.record_query_result(intent=intent, found=bool(lines))
        self.metrics.maybe_log(logger, "MatchQueryTool.answer")
        if not lines:
            return NOT_FOUND_REPLIES[intent]
        return "\n".join(lines)

    def _latest_match_for(self, team: str) -> Optional[Match]:
        return self.store.fetch_one(
            f"""
            SELECT {MATCH_COLUMNS}
            FROM matches m
            WHERE {TEAM_FILTER}
            ORDER BY m.date DESC, m.id DESC
            LIMIT 1
            """,
            (team, team),
            Match,
        )

    def today_fixtures(self, team: Optional[str] = None) -> str:
        matches = self.store.fetch_all(
            f"SELECT {MATCH_COLUMNS} FROM matches m WHERE m.is_today = 1 ORDER BY m.kickoff, m.id",
            (),
            Match,
        )
        return self._reply(
            "today_fixtures",
            [f"{m.home} vs {m.away} at {m.stadium}, {m.city}" for m in matches],
        )

    def latest_score(self, team: Optional[str]) -> str:
        if not team:
            return "Which team do you mean?"
        match = self.store.fetch_one(
            f"""
            SELECT {MATCH_COLUMNS}
            FROM matches m
            WHERE {TEAM_FILTER}
              AND m.home_goals IS NOT NULL AND m.away_goals IS NOT NULL
              AND m.date <= ?
            ORDER BY m.date DESC, m.id DESC
            LIMIT 1
            """,
            (team, team, self.reference_date),
            Match,
        )
        lines = []
        if match:
            lines.append(
                f"{match.home} {match.home_goals} - {match.away_goals} {match.away} on {match.date}"
            )
        return self._reply("latest_score", lines)

    def goal_scorers(self, team: Optional[str]) -> str:
        if not team:
            return "For which team?"
        goals = self.store.fetch_all(
            """
            SELECT g.match_id, g.team, g.scorer, g.minute
            FROM goals g
            JOIN matches m ON m.id = g.match_id
            WHERE lower(g.team) = ?
            ORDER BY m.date DESC, m.id DESC, g.minute ASC
            """,
            (team,),
            Goal,
        )
        return self._reply("goal_scorers", [f"{g.scorer} ({g.minute}')" for g in goals])

    def stadium_location(self, team: Optional[str]) -> str:
        if not team:
            return STADIUM_CLARIFICATION
        match = self._latest_match_for(team)
        lines = []
        if match:
            lines.append(
                f"{match.stadium}, {match.city} for {match.home} vs {match.away} on {match.date}"
            )
        return self._reply("stadium_location", lines)

    def sport_type_for_match(self, team: Optional[str]) -> str:
        if team:
            match = self._latest_match_for(team)
        else:
            match = self.store.fetch_one(
                f"SELECT {MATCH_COLUMNS} FROM matches m ORDER BY m.date DESC, m.id DESC LIMIT 1",
                (),
                Match,
            )
        lines = []
        if match:
            lines.append(f"{match.home} vs {match.away} is {match.sport} ({match.date})")
        return self._reply("sport_type_for_match", lines)

    def upcoming_for_team(self, team: Optional[str]) -> str:
        if not team:
            return "Which team?"
        match = self.store.fetch_one(
            f"""
            SELECT {MATCH_COLUMNS}
            FROM matches m
            WHERE {TEAM_FILTER}
              AND m.home_goals IS NULL AND m.away_goals IS NULL
              AND m.date >= ?
            ORDER BY m.date ASC, m.kickoff ASC, m.id ASC
            LIMIT 1
            """,
            (team, team, self.reference_date),
            Match,
        )
        lines = []
        if match:
            lines.append(
                f"Next: {match.home} vs {match.away} on {match.date} {match.kickoff} "
                f"at {match.stadium}, {match.city}"
            )
        return self._reply("upcoming_for_team", lines)

    def last_match_for_team(self, team: Optional[str]) -> str:
        if not team:
            return "Which team?"
        match = self.store.fetch_one(
            f"""
            SELECT {MATCH_COLUMNS}
            FROM matches m
            WHERE {TEAM_FILTER}
              AND m.home_goals IS NOT NULL AND m.away_goals IS NOT NULL
              AND m.date <= ?
            ORDER BY m.date DESC, m.id DESC
            LIMIT 1
            """,
            (team, team, self.reference_date),
            Match,
        )
        lines = []
        if match:
            lines.append(
                f"Last: {match.home} {match.home_goals}-{match.away_goals} {match.away} "
                f"at {match.stadium} on {match.date}"
            )
        return self._reply("last_match_for_team", lines)

    def top_scorer_team(self, team: Optional[str]) -> str:
        if not team:
            return "Which team?"
        tally = self.store.fetch_one(
            """
            SELECT scorer, COUNT(*) AS goals
            FROM goals
            WHERE lower(team) = ?
            GROUP BY scorer
            ORDER BY goals DESC, MIN(id) ASC
            LIMIT 1
            """,
            (team,),
            ScorerTally,
        )
        lines = []
        if tally:
            lines.append(f"Top scorer: {tally.scorer} with {tally.goals}")
        return self._reply("top_scorer_team", lines)

    def tournament_info(self, team: Optional[str] = None) -> str:
        tournaments = self.store.fetch_all(
            "SELECT name, season, winner FROM tournaments ORDER BY id LIMIT ?",
            (TOURNAMENT_LIMIT,),
            Tournament,
        )
        return self._reply("tournament_info", [f"{t.name} {t.season}" for t in tournaments])

    def help(self, team: Optional[str] = None) -> str:
        return HELP_REPLY
