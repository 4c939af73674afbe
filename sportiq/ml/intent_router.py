"""
질문 의도를 분류하기 위한 규칙 기반 라우터 모듈.

규칙은 위에서부터 순서대로 평가되며 처음 일치한 규칙의 의도를 반환합니다.
순서 자체가 계약입니다. 구체적인 표현(오늘 경기, 득점왕)이 일반적인 표현
(스코어/결과, 누가 득점했나)보다 먼저 검사되어야 합니다.
일치하는 규칙이 없으면 None을 반환하고, 호출 측이 분류 모델로 넘깁니다.
"""

import re
from typing import Optional, Pattern, Sequence, Tuple

Rule = Tuple[Pattern[str], str]

INTENT_RULES: Tuple[Rule, ...] = (
    (re.compile(r"who.*playing.*today|today.*fixtures|today.*matches"), "today_fixtures"),
    (re.compile(r"\b(score|result)\b"), "latest_score"),
    (re.compile(r"top scorer|leading scorer|highest.*scorer"), "top_scorer_team"),
    (re.compile(r"who.*scored|goal.*scorer|scorers?"), "goal_scorers"),
    (re.compile(r"where.*match|which.*stadium|\bstadium\b|\bcity\b"), "stadium_location"),
    (re.compile(r"what.*sport|type of sport|sport type"), "sport_type_for_match"),
    (re.compile(r"next match|upcoming|fixture"), "upcoming_for_team"),
    (re.compile(r"last match|previous game"), "last_match_for_team"),
    (re.compile(r"tournament"), "tournament_info"),
    (re.compile(r"help|what can you do"), "help"),
    (re.compile(r"who.*won|winner"), "tournament_info"),
)


class IntentRouter:
    """First-match-wins evaluation of an ordered rule table."""

    def __init__(self, rules: Sequence[Rule] = INTENT_RULES) -> None:
        self.rules: Tuple[Rule, ...] = tuple(rules)

    def route(self, question: str) -> Optional[str]:
        text = question.lower()
        for pattern, intent in self.rules:
            if pattern.search(text):
                return intent
        return None


_default_router = IntentRouter()


def route(question: str) -> Optional[str]:
    return _default_router.route(question)
