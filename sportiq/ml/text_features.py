"""
텍스트 → 특징 벡터 변환 모듈.

토크나이저, 어휘(vocabulary)/레이블 빌더, L2 정규화 단어 빈도 벡터,
그리고 모델 캐시 키로 쓰이는 어휘 시그니처를 제공합니다.
학습 스크립트와 런타임이 반드시 같은 함수를 사용해야 벡터 인덱스가 일치합니다.
"""

from __future__ import annotations

import hashlib
import re
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from .corpus import Sample

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SIGNATURE_LENGTH = 16


def tokenize(text: str) -> List[str]:
    cleaned = _NON_ALNUM.sub(" ", text.lower())
    return [token for token in cleaned.split() if token]


def build_vocabulary(samples: Iterable[Sample]) -> List[str]:
    tokens = set()
    for sample in samples:
        tokens.update(tokenize(sample.text))
    return sorted(tokens)


def build_labels(samples: Iterable[Sample]) -> List[str]:
    return sorted({sample.intent for sample in samples})


def build_vocabulary_and_labels(
    samples: Sequence[Sample],
) -> Tuple[List[str], List[str]]:
    return build_vocabulary(samples), build_labels(samples)


def _index(vocabulary: Sequence[str]) -> Dict[str, int]:
    return {token: i for i, token in enumerate(vocabulary)}


def vectorize(text: str, vocabulary: Sequence[str]) -> np.ndarray:
    """
    텍스트를 어휘 길이의 L2 정규화 단어 빈도 벡터로 변환합니다.

    어휘에 없는 토큰은 무시하며, 어휘 토큰이 하나도 없으면 영벡터를 그대로 반환합니다.
    """
    positions = _index(vocabulary)
    vec = np.zeros(len(vocabulary), dtype=np.float64)
    for token in tokenize(text):
        i = positions.get(token)
        if i is not None:
            vec[i] += 1.0
    norm = float(np.linalg.norm(vec)) or 1.0
    return vec / norm


def vectorize_many(texts: Iterable[str], vocabulary: Sequence[str]) -> np.ndarray:
    rows = [vectorize(text, vocabulary) for text in texts]
    if not rows:
        return np.zeros((0, len(vocabulary)), dtype=np.float64)
    return np.vstack(rows)


def model_signature(vocabulary: Sequence[str]) -> str:
    digest = hashlib.sha256(" ".join(vocabulary).encode("utf-8")).hexdigest()
    return f"{len(vocabulary)}_{digest[:_SIGNATURE_LENGTH]}"


def model_key(vocabulary: Sequence[str], prefix: str, version: str) -> str:
    return f"{prefix}{version}_{model_signature(vocabulary)}"
