"""
의도 모델 캐시/라이프사이클 매니저.

어휘 시그니처를 캐시 키로 사용해 학습된 모델을 저장하고, 같은 시그니처의
모델이 있으면 재학습 없이 불러옵니다. 시그니처가 바뀌면 예약된 prefix를 가진
이전 모델을 모두 지운 뒤 새로 학습합니다. 추론 중 입력 차원 불일치가
발견되면 저장된 모델을 전부 삭제해 다음 요청에서 재학습이 일어나도록 합니다.

활성 모델은 ModelHandle 하나로만 노출되며, 교체는 참조 교체로 원자적으로 이루어집니다.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from fastapi.concurrency import run_in_threadpool

from .classifier import (
    IntentClassifier,
    Prediction,
    TrainingConfig,
    TrainingReport,
    train_intent_classifier,
)
from .corpus import Sample
from .errors import ModelNotReady, ModelShapeMismatch
from .model_store import ModelStore
from .text_features import build_vocabulary_and_labels, model_key, model_signature, vectorize

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "sportiq_intent_"
DEFAULT_KEY_VERSION = "v3"


@dataclass(frozen=True)
class ModelHandle:
    signature: str
    key: str
    vocabulary: Tuple[str, ...]
    labels: Tuple[str, ...]
    classifier: IntentClassifier
    report: TrainingReport
    trained: bool


class ModelCacheManager:
    def __init__(
        self,
        store: ModelStore,
        *,
        config: Optional[TrainingConfig] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        key_version: str = DEFAULT_KEY_VERSION,
        ready_timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._config = config or TrainingConfig()
        self._prefix = key_prefix
        self._version = key_version
        self._ready_timeout = ready_timeout
        self._lock = asyncio.Lock()
        self._handle: Optional[ModelHandle] = None
        self._samples: Tuple[Sample, ...] = ()
        self._pending: Optional[asyncio.Future] = None
        self.train_count = 0

    @classmethod
    def from_settings(cls, settings: Any, store: ModelStore) -> "ModelCacheManager":
        return cls(
            store,
            config=TrainingConfig.from_settings(settings),
            key_prefix=settings.model_key_prefix,
            key_version=settings.model_key_version,
            ready_timeout=settings.model_ready_timeout_seconds,
        )

    @property
    def handle(self) -> Optional[ModelHandle]:
        return self._handle

    @property
    def is_ready(self) -> bool:
        return self._handle is not None

    def owned_keys(self) -> List[str]:
        return [key for key in self._store.keys() if key.startswith(self._prefix)]

    def _purge_sync(self) -> int:
        removed = 0
        for key in self.owned_keys():
            if self._store.delete(key):
                removed += 1
        return removed

    def _handle_from_artifact(
        self,
        artifact: Any,
        key: str,
        signature: str,
        vocabulary: Sequence[str],
        labels: Sequence[str],
    ) -> Optional[ModelHandle]:
        if not isinstance(artifact, dict):
            return None
        classifier = artifact.get("classifier")
        if not isinstance(classifier, IntentClassifier):
            return None
        if list(artifact.get("labels") or []) != list(labels):
            logger.info("[ModelCache] cached labels differ from corpus labels key=%s", key)
            return None
        report = artifact.get("report")
        if not isinstance(report, TrainingReport):
            return None
        return ModelHandle(
            signature=signature,
            key=key,
            # 벡터화는 항상 현재 코퍼스의 어휘 기준
            vocabulary=tuple(vocabulary),
            labels=tuple(labels),
            classifier=classifier,
            report=report,
            trained=False,
        )

    async def ensure_model(self, samples: Optional[Iterable[Sample]] = None) -> ModelHandle:
        """
        현재 코퍼스에 맞는 모델을 활성화하고 그 핸들을 반환합니다.

        1. 같은 키의 모델이 이미 활성 상태면 그대로 반환
        2. 저장소에 같은 키의 모델이 있으면 로드 (재학습 없음)
        3. 없으면 prefix가 같은 저장 모델을 모두 삭제하고 새로 학습 후 저장
        """
        if samples is not None:
            self._samples = tuple(samples)

        async with self._lock:
            corpus = self._samples
            if not corpus:
                raise ModelNotReady("No training corpus registered")

            vocabulary, labels = build_vocabulary_and_labels(corpus)
            signature = model_signature(vocabulary)
            key = model_key(vocabulary, self._prefix, self._version)

            current = self._handle
            if current is not None and current.key == key and list(current.labels) == labels:
                return current

            artifact = await run_in_threadpool(self._store.load, key)
            handle = self._handle_from_artifact(artifact, key, signature, vocabulary, labels)
            if handle is not None:
                logger.info("[ModelCache] cache hit key=%s", key)
                self._handle = handle
                return handle

            removed = await run_in_threadpool(self._purge_sync)
            logger.info("[ModelCache] cache miss key=%s purged=%s, training", key, removed)

            classifier, report = await run_in_threadpool(
                train_intent_classifier, corpus, vocabulary, labels, self._config
            )
            self.train_count += 1
            await run_in_threadpool(
                self._store.save,
                key,
                {
                    "signature": signature,
                    "vocabulary": list(vocabulary),
                    "labels": list(labels),
                    "classifier": classifier,
                    "report": report,
                },
            )

            handle = ModelHandle(
                signature=signature,
                key=key,
                vocabulary=tuple(vocabulary),
                labels=tuple(labels),
                classifier=classifier,
                report=report,
                trained=True,
            )
            self._handle = handle
            return handle

    async def acquire(self) -> ModelHandle:
        """
        활성 핸들을 반환합니다.

        초기 학습이 진행 중이면 끝날 때까지(최대 ready_timeout) 대기하고,
        무효화된 뒤라면 등록된 코퍼스로 다시 ensure_model을 수행합니다.
        """
        handle = self._handle
        if handle is not None:
            return handle
        if not self._samples:
            raise ModelNotReady()

        pending = self._pending
        if pending is None or pending.done():
            pending = asyncio.ensure_future(self.ensure_model())
            self._pending = pending
        try:
            return await asyncio.wait_for(asyncio.shield(pending), timeout=self._ready_timeout)
        except asyncio.TimeoutError as exc:
            raise ModelNotReady("Model is still initializing") from exc

    async def invalidate(self, handle: Optional[ModelHandle] = None) -> int:
        """저장된 모델을 모두 삭제하고 (해당) 활성 핸들을 내립니다."""
        async with self._lock:
            if handle is None or self._handle is handle:
                self._handle = None
            removed = await run_in_threadpool(self._purge_sync)
        logger.warning("[ModelCache] invalidated active model, purged=%s", removed)
        return removed

    async def predict(self, handle: ModelHandle, text: str) -> Prediction:
        vector = vectorize(text, handle.vocabulary)
        try:
            return handle.classifier.predict(vector)
        except ModelShapeMismatch as exc:
            logger.warning(
                "[ModelCache] shape mismatch key=%s expected=%s actual=%s",
                handle.key,
                exc.expected,
                exc.actual,
            )
            await self.invalidate(handle)
            raise
