"""
자연어 스포츠 질문을 답변 문자열로 바꾸는 해석(resolution) 에이전트입니다.

처리 흐름:
1. 규칙 라우터가 의도를 찾으면 분류기를 건너뜀 (confidence = 1)
2. 아니면 캐시된 분류 모델로 의도를 예측
   - 모델 미준비/입력 차원 불일치는 "다시 물어봐 달라"는 일시적 오류 답변으로 변환
3. 의도가 없거나 confidence가 임계값 미만이면 도메인 밖 안내 문장 반환
4. 그 외에는 지식 저장소를 조회해 답변 생성

답변 문장의 어투 다듬기는 이 모듈의 책임이 아닙니다 (core.polish 참고).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..ml.errors import IntentModelError
from ..ml.intent_router import IntentRouter
from ..ml.model_cache import ModelCacheManager
from ..tools.match_query import MatchQueryTool

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.45

OUT_OF_DOMAIN_REPLY = (
    "I can help with sports only. Try asking about scores, fixtures, scorers, stadiums, "
    "or sport type."
)
TRANSIENT_ERROR_REPLY = "I refreshed my brain. Ask that again please."


class ResolutionState(str, Enum):
    IDLE = "idle"
    RULE_MATCH = "rule_match"
    CLASSIFYING = "classifying"
    CONFIDENCE_GATE = "confidence_gate"
    RESOLVED = "resolved"
    FALLBACK = "fallback"


@dataclass
class Resolution:
    """Outcome of one question, with enough context for logging and the API."""

    answer: str
    state: ResolutionState
    intent: Optional[str] = None
    confidence: float = 0.0
    source: Optional[str] = None
    transient_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "state": self.state.value,
            "intent": self.intent,
            "confidence": self.confidence,
            "source": self.source,
            "transient_error": self.transient_error,
        }


class SportsQuestionAgent:
    def __init__(
        self,
        router: IntentRouter,
        models: ModelCacheManager,
        queries: MatchQueryTool,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        self.router = router
        self.models = models
        self.queries = queries
        self.confidence_threshold = confidence_threshold

    async def respond(self, text: str) -> str:
        return (await self.resolve(text)).answer

    async def resolve(self, text: str) -> Resolution:
        if not text or not text.strip():
            return Resolution(answer=OUT_OF_DOMAIN_REPLY, state=ResolutionState.FALLBACK)

        intent = self.router.route(text)
        if intent:
            state = ResolutionState.RULE_MATCH
            confidence = 1.0
            source = "rule"
        else:
            state = ResolutionState.CLASSIFYING
            source = "classifier"
            try:
                handle = await self.models.acquire()
                prediction = await self.models.predict(handle, text)
            except IntentModelError as exc:
                logger.warning("[SportsAgent] classifier unavailable: %s", exc)
                return Resolution(
                    answer=TRANSIENT_ERROR_REPLY,
                    state=ResolutionState.FALLBACK,
                    source=source,
                    transient_error=True,
                )
            intent = prediction.intent
            confidence = prediction.confidence

        logger.debug(
            "[SportsAgent] %s -> %s intent=%s confidence=%.3f",
            state.value,
            ResolutionState.CONFIDENCE_GATE.value,
            intent,
            confidence,
        )
        if not intent or confidence < self.confidence_threshold:
            logger.info(
                "[SportsAgent] below confidence gate intent=%s confidence=%.3f threshold=%.2f",
                intent,
                confidence,
                self.confidence_threshold,
            )
            return Resolution(
                answer=OUT_OF_DOMAIN_REPLY,
                state=ResolutionState.FALLBACK,
                intent=intent,
                confidence=confidence,
                source=source,
            )

        answer = self.queries.answer(intent, text)
        return Resolution(
            answer=answer,
            state=ResolutionState.RESOLVED,
            intent=intent,
            confidence=confidence,
            source=source,
        )
