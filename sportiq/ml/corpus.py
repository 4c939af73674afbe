"""학습용 의도(intent) 코퍼스 로더."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Union


@dataclass(frozen=True)
class Sample:
    """A labeled training utterance."""

    text: str
    intent: str

    def to_dict(self) -> dict:
        return {"text": self.text, "intent": self.intent}


def parse_samples(records: Iterable[Any]) -> List[Sample]:
    samples: List[Sample] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise ValueError(f"corpus record #{index} is not an object")
        text = record.get("text")
        intent = record.get("intent")
        if not isinstance(text, str) or not text.strip():
            raise ValueError(f"corpus record #{index} has no text")
        if not isinstance(intent, str) or not intent.strip():
            raise ValueError(f"corpus record #{index} has no intent")
        samples.append(Sample(text=text, intent=intent.strip()))
    return samples


def load_samples(path: Union[str, Path]) -> List[Sample]:
    """JSON 배열 형태의 코퍼스 파일을 읽어 Sample 목록으로 변환합니다."""
    with open(path, encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, list):
        raise ValueError(f"{path}: expected a JSON array of samples")
    return parse_samples(payload)
