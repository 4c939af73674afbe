"""
답변 문장 다듬기(polish) 클라이언트.

이미 계산된 답변을 OpenRouter 모델로 한 문장짜리 친근한 문장으로 바꿉니다.
사실 관계는 바꾸지 않으며, 어떤 실패든 원문을 그대로 돌려줍니다.
요청은 한 번의 왕복(round trip)만 수행합니다.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

POLISH_SYSTEM_PROMPT = (
    "Rewrite the factual sports answer in one friendly sentence. Keep facts, add nothing."
)

_SPORTS_PATTERN = re.compile(
    r"score|result|match|fixture|stadium|city|who scored|scorer|tournament|football"
    r"|team|vs|play(ing)?|won|winner|cup|league"
)


@dataclass(frozen=True)
class PolishResult:
    text: str
    used_model: str

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "usedModel": self.used_model}


def is_sportsy(text: str) -> bool:
    return bool(_SPORTS_PATTERN.search(text.lower()))


class ReplyPolisher:
    def __init__(
        self,
        *,
        enabled: bool,
        api_key: Optional[str],
        model: str,
        base_url: str,
        timeout: float = 10.0,
        max_tokens: int = 80,
        referer: Optional[str] = None,
        app_title: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.enabled = enabled
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.referer = referer
        self.app_title = app_title
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Any, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "ReplyPolisher":
        return cls(
            enabled=settings.polish_enabled,
            api_key=settings.openrouter_api_key,
            model=settings.openrouter_model,
            base_url=settings.openrouter_base_url,
            timeout=settings.polish_timeout_seconds,
            max_tokens=settings.polish_max_tokens,
            app_title=settings.app_name,
            transport=transport,
        )

    async def polish(self, text: str, enabled: Optional[bool] = None) -> PolishResult:
        if not (self.enabled if enabled is None else enabled):
            return PolishResult(text=text, used_model="off")
        if not self.api_key or not is_sportsy(text):
            return PolishResult(text=text, used_model="none")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.referer or "",
            "X-Title": self.app_title or "",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": POLISH_SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            "max_tokens": self.max_tokens,
            "temperature": 0.2,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url.rstrip('/')}/chat/completions",
                    json=payload,
                    headers=headers,
                )
            response.raise_for_status()
            data = response.json()
            content = data.get("choices", [{}])[0].get("message", {}).get("content") or ""
        except (httpx.HTTPError, ValueError, AttributeError, IndexError, TypeError) as exc:
            logger.warning("[ReplyPolisher] polish failed, passing text through: %s", exc)
            return PolishResult(text=text, used_model="error")

        content = content.strip()
        if not content:
            return PolishResult(text=text, used_model="error")
        return PolishResult(text=content, used_model=self.model)
