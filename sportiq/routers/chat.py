"""채팅 질문에 답하는 엔드포인트를 정의합니다.

질문을 해석 에이전트에 넘겨 답변을 만들고, 요청 시 답변 문장을 다듬습니다.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..agents.sports_agent import SportsQuestionAgent
from ..core.polish import ReplyPolisher
from ..deps import get_agent, get_polisher

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatPayload(BaseModel):
    """채팅 요청 시 POST body의 스키마 정의."""

    question: str
    polish: Optional[bool] = None


class PolishPayload(BaseModel):
    text: str


@router.post("/completion")
async def chat_completion(
    payload: ChatPayload,
    agent: SportsQuestionAgent = Depends(get_agent),
    polisher: ReplyPolisher = Depends(get_polisher),
):
    """단일 JSON 응답으로 답변과 해석 정보를 반환하는 엔드포인트입니다."""
    question = payload.question.strip()
    if not question:
        raise HTTPException(status_code=400, detail="Please enter a question.")

    resolution = await agent.resolve(question)
    polished = await polisher.polish(resolution.answer, enabled=payload.polish)

    body = resolution.to_dict()
    body["answer"] = polished.text
    body["raw_answer"] = resolution.answer
    body["used_model"] = polished.used_model
    return body


@router.post("/polish")
async def polish_text(
    payload: PolishPayload,
    polisher: ReplyPolisher = Depends(get_polisher),
):
    """이미 만들어진 답변 문장만 다듬습니다. 실패 시 원문을 그대로 반환합니다."""
    result = await polisher.polish(payload.text, enabled=True)
    return result.to_dict()
