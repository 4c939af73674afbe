"""
의도 분류기 학습/추론 모듈.

은닉층 하나(ReLU)와 softmax 출력층으로 구성된 작은 MLP를 사용합니다.
학습은 의도별 층화 분할(stratified split) 후 epoch 단위로 진행하며,
epoch마다 train/validation 정확도와 손실을 기록합니다.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.exceptions import NotFittedError
from sklearn.metrics import confusion_matrix, log_loss, precision_recall_fscore_support
from sklearn.neural_network import MLPClassifier

from .corpus import Sample
from .errors import ModelNotReady, ModelShapeMismatch
from .text_features import vectorize_many

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainingConfig:
    hidden_units: int = 32
    learning_rate: float = 0.01
    epochs: int = 25
    batch_size: int = 8
    validation_ratio: float = 0.2
    random_seed: int = 4243087
    l2_penalty: float = 1e-4

    @classmethod
    def from_settings(cls, settings: Any) -> "TrainingConfig":
        return cls(
            hidden_units=settings.hidden_units,
            learning_rate=settings.learning_rate,
            epochs=settings.epochs,
            batch_size=settings.batch_size,
            validation_ratio=settings.validation_ratio,
            random_seed=settings.random_seed,
            l2_penalty=settings.l2_penalty,
        )


@dataclass(frozen=True)
class Prediction:
    intent: str
    confidence: float


@dataclass
class EpochMetrics:
    epoch: int
    train_accuracy: float
    train_loss: float
    val_accuracy: Optional[float] = None
    val_loss: Optional[float] = None


@dataclass
class TrainingReport:
    """Diagnostics of a single training run (or a cache hit, with no epochs)."""

    samples: int
    train_size: int
    val_size: int
    vocab_size: int
    intents: int
    epochs: int
    parameters: int
    history: List[EpochMetrics] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        if not self.history:
            return 0.0
        last = self.history[-1]
        return last.val_accuracy if last.val_accuracy is not None else last.train_accuracy

    @property
    def loss(self) -> float:
        if not self.history:
            return 0.0
        last = self.history[-1]
        return last.val_loss if last.val_loss is not None else last.train_loss

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["accuracy"] = self.accuracy
        payload["loss"] = self.loss
        return payload


@dataclass
class IntentMetrics:
    intent: str
    support: int
    precision: float
    recall: float
    f1: float


@dataclass
class EvaluationReport:
    labels: List[str]
    accuracy: float
    loss: float
    confusion: List[List[int]]
    per_intent: List[IntentMetrics]
    macro_precision: float
    macro_recall: float
    macro_f1: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IntentClassifier:
    """Feed-forward scorer mapping a feature vector to a distribution over labels."""

    def __init__(self, labels: Sequence[str], input_dim: int, config: TrainingConfig):
        self.labels: List[str] = list(labels)
        self.input_dim = input_dim
        self._classes = np.arange(len(self.labels))
        self._model = MLPClassifier(
            hidden_layer_sizes=(config.hidden_units,),
            activation="relu",
            solver="adam",
            learning_rate_init=config.learning_rate,
            batch_size=config.batch_size,
            alpha=config.l2_penalty,
            shuffle=True,
            random_state=config.random_seed,
        )
        self._fitted = False

    @property
    def parameter_count(self) -> int:
        if not self._fitted:
            return 0
        weights = sum(w.size for w in self._model.coefs_)
        biases = sum(b.size for b in self._model.intercepts_)
        return int(weights + biases)

    def fit_epoch(self, features: np.ndarray, targets: np.ndarray) -> None:
        # partial_fit은 호출마다 셔플된 미니배치로 정확히 한 epoch을 학습함
        batch = max(1, min(self._model.batch_size, len(targets)))
        self._model.set_params(batch_size=batch)
        self._model.partial_fit(features, targets, classes=self._classes)
        self._fitted = True

    def predict_proba(self, features: np.ndarray) -> np.ndarray:
        if not self._fitted:
            raise ModelNotReady()
        features = np.atleast_2d(features)
        if features.shape[1] != self.input_dim:
            raise ModelShapeMismatch(self.input_dim, features.shape[1])
        try:
            return self._model.predict_proba(features)
        except NotFittedError as exc:
            raise ModelNotReady() from exc
        except ValueError as exc:
            # 저장된 가중치와 입력 차원이 다른 경우 sklearn이 ValueError를 던짐
            raise ModelShapeMismatch(self.input_dim, features.shape[1]) from exc

    def predict(self, vector: np.ndarray) -> Prediction:
        probs = self.predict_proba(vector)[0]
        idx = int(np.argmax(probs))  # 동률이면 가장 앞선 레이블
        return Prediction(intent=self.labels[idx], confidence=float(probs[idx]))

    def score(
        self, features: np.ndarray, targets: np.ndarray
    ) -> Tuple[Optional[float], Optional[float]]:
        if len(targets) == 0:
            return None, None
        probs = self.predict_proba(features)
        accuracy = float(np.mean(np.argmax(probs, axis=1) == targets))
        loss = float(log_loss(targets, probs, labels=self._classes))
        return accuracy, loss


def stratified_split(
    samples: Sequence[Sample],
    labels: Sequence[str],
    ratio: float,
    seed: int,
) -> Tuple[List[Sample], List[Sample]]:
    """
    의도별로 validation 샘플을 분리합니다.

    각 의도마다 최소 1개를 validation으로 떼어내되, 그 결과 학습 샘플이
    하나도 남지 않으면 validation 샘플 하나를 학습 쪽으로 되돌립니다.
    샘플이 1개뿐인 의도는 학습에만 쓰입니다.
    """
    rng = np.random.default_rng(seed)
    by_intent: Dict[str, List[Sample]] = defaultdict(list)
    for sample in samples:
        by_intent[sample.intent].append(sample)

    train: List[Sample] = []
    val: List[Sample] = []
    for intent in labels:
        group = by_intent.get(intent, [])
        shuffled = [group[i] for i in rng.permutation(len(group))]
        n_val = max(1, int(len(shuffled) * ratio + 0.5))
        val_part = shuffled[:n_val]
        train_part = shuffled[n_val:]
        if not train_part and val_part:
            train_part.append(val_part.pop())
        train.extend(train_part)
        val.extend(val_part)
    return train, val


def _targets(samples: Sequence[Sample], labels: Sequence[str]) -> np.ndarray:
    index = {label: i for i, label in enumerate(labels)}
    return np.array([index[s.intent] for s in samples], dtype=np.int64)


def train_intent_classifier(
    samples: Sequence[Sample],
    vocabulary: Sequence[str],
    labels: Sequence[str],
    config: TrainingConfig,
) -> Tuple[IntentClassifier, TrainingReport]:
    if not vocabulary:
        raise ValueError("cannot train an intent classifier on an empty vocabulary")
    if len(labels) < 2:
        raise ValueError("at least two intents are required to train a classifier")
    known = set(labels)
    missing = sorted({s.intent for s in samples} - known)
    if missing:
        raise ValueError(f"samples reference intents outside the label set: {missing}")

    train, val = stratified_split(samples, labels, config.validation_ratio, config.random_seed)
    x_train = vectorize_many((s.text for s in train), vocabulary)
    y_train = _targets(train, labels)
    x_val = vectorize_many((s.text for s in val), vocabulary)
    y_val = _targets(val, labels)

    classifier = IntentClassifier(labels, len(vocabulary), config)
    history: List[EpochMetrics] = []
    for epoch in range(1, config.epochs + 1):
        classifier.fit_epoch(x_train, y_train)
        train_acc, train_loss = classifier.score(x_train, y_train)
        val_acc, val_loss = classifier.score(x_val, y_val)
        history.append(
            EpochMetrics(
                epoch=epoch,
                train_accuracy=train_acc,
                train_loss=train_loss,
                val_accuracy=val_acc,
                val_loss=val_loss,
            )
        )
        logger.debug(
            "[IntentClassifier] epoch=%02d acc=%.4f val_acc=%s loss=%.4f val_loss=%s",
            epoch,
            train_acc,
            "n/a" if val_acc is None else f"{val_acc:.4f}",
            train_loss,
            "n/a" if val_loss is None else f"{val_loss:.4f}",
        )

    report = TrainingReport(
        samples=len(samples),
        train_size=len(train),
        val_size=len(val),
        vocab_size=len(vocabulary),
        intents=len(labels),
        epochs=config.epochs,
        parameters=classifier.parameter_count,
        history=history,
    )
    logger.info(
        "[IntentClassifier] trained samples=%s train=%s val=%s vocab=%s intents=%s acc=%.4f loss=%.4f",
        report.samples,
        report.train_size,
        report.val_size,
        report.vocab_size,
        report.intents,
        report.accuracy,
        report.loss,
    )
    return classifier, report


def evaluate(
    classifier: IntentClassifier,
    samples: Sequence[Sample],
    vocabulary: Sequence[str],
) -> EvaluationReport:
    """Confusion matrix and per-intent precision/recall/F1 (0 when undefined)."""
    labels = classifier.labels
    indices = list(range(len(labels)))
    if not samples:
        return EvaluationReport(
            labels=list(labels),
            accuracy=0.0,
            loss=0.0,
            confusion=[[0] * len(labels) for _ in labels],
            per_intent=[IntentMetrics(label, 0, 0.0, 0.0, 0.0) for label in labels],
            macro_precision=0.0,
            macro_recall=0.0,
            macro_f1=0.0,
        )

    features = vectorize_many((s.text for s in samples), vocabulary)
    targets = _targets(samples, labels)
    accuracy, loss = classifier.score(features, targets)
    predicted = np.argmax(classifier.predict_proba(features), axis=1)

    matrix = confusion_matrix(targets, predicted, labels=indices)
    precision, recall, f1, support = precision_recall_fscore_support(
        targets, predicted, labels=indices, zero_division=0
    )
    per_intent = [
        IntentMetrics(
            intent=labels[i],
            support=int(support[i]),
            precision=float(precision[i]),
            recall=float(recall[i]),
            f1=float(f1[i]),
        )
        for i in indices
    ]
    return EvaluationReport(
        labels=list(labels),
        accuracy=accuracy,
        loss=loss,
        confusion=matrix.astype(int).tolist(),
        per_intent=per_intent,
        macro_precision=float(np.mean(precision)),
        macro_recall=float(np.mean(recall)),
        macro_f1=float(np.mean(f1)),
    )
