#!/usr/bin/env python3
"""
의도 분류기 오프라인 학습 및 평가 리포트 스크립트.

- 의도별 층화 분할 (seed 고정으로 재현 가능)
- epoch마다 train/val 정확도와 손실 로그
- validation 기준 혼동 행렬, 의도별 precision/recall/F1, macro 평균
- 결과를 JSON 리포트로 저장
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

sys.path.insert(0, str(Path(__file__).parent.parent))

from sportiq.config import get_settings
from sportiq.ml.classifier import (
    TrainingConfig,
    evaluate,
    stratified_split,
    train_intent_classifier,
)
from sportiq.ml.corpus import Sample, load_samples
from sportiq.ml.text_features import build_vocabulary_and_labels

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path("models") / "intent_metrics.json"


def build_report(samples: Sequence[Sample], config: TrainingConfig) -> Dict[str, Any]:
    vocabulary, labels = build_vocabulary_and_labels(samples)
    logger.info(
        "samples: %s, intents: %s, vocab: %s", len(samples), len(labels), len(vocabulary)
    )

    classifier, training = train_intent_classifier(samples, vocabulary, labels, config)
    for epoch in training.history:
        logger.info(
            "epoch %02d | acc %.4f val_acc %s | loss %.4f val_loss %s",
            epoch.epoch,
            epoch.train_accuracy,
            "n/a" if epoch.val_accuracy is None else f"{epoch.val_accuracy:.4f}",
            epoch.train_loss,
            "n/a" if epoch.val_loss is None else f"{epoch.val_loss:.4f}",
        )

    # 학습 때와 같은 seed로 다시 분할하면 동일한 train/val 집합이 나옴
    train, val = stratified_split(samples, labels, config.validation_ratio, config.random_seed)
    train_eval = evaluate(classifier, train, vocabulary)
    val_eval = evaluate(classifier, val, vocabulary).to_dict()

    return {
        "samples": len(samples),
        "intents": len(labels),
        "vocab": len(vocabulary),
        "epochs": config.epochs,
        "params": classifier.parameter_count,
        "split": {"train": len(train), "val": len(val)},
        "training": training.to_dict(),
        "histories": {
            "acc": [e.train_accuracy for e in training.history],
            "valAcc": [e.val_accuracy for e in training.history],
            "loss": [e.train_loss for e in training.history],
            "valLoss": [e.val_loss for e in training.history],
        },
        "final": {
            "trainAcc": train_eval.accuracy,
            "valAcc": val_eval["accuracy"],
            "trainLoss": train_eval.loss,
            "valLoss": val_eval["loss"],
            "macro": {
                "precision": val_eval["macro_precision"],
                "recall": val_eval["macro_recall"],
                "f1": val_eval["macro_f1"],
            },
            "perIntent": val_eval["per_intent"],
            "confusion": val_eval["confusion"],
            "labels": list(labels),
        },
    }


def format_summary(report: Dict[str, Any]) -> str:
    final = report["final"]
    lines: List[str] = [
        "",
        "========== TRAINING SUMMARY ==========",
        f"final train acc: {final['trainAcc']:.4f}  final val acc: {final['valAcc']:.4f}",
        f"final train loss: {final['trainLoss']:.4f}  final val loss: {final['valLoss']:.4f}",
        f"vocab size: {report['vocab']}  intents: {report['intents']}  "
        f"trainable params: {report['params']}",
        "--------------------------------------",
        f"macro precision: {final['macro']['precision']:.4f}  "
        f"macro recall: {final['macro']['recall']:.4f}  macro F1: {final['macro']['f1']:.4f}",
        "",
        "Per intent metrics on validation:",
    ]
    for row in sorted(final["perIntent"], key=lambda r: r["f1"], reverse=True):
        lines.append(
            f"{row['intent']:<20} | support {row['support']:>2} | "
            f"P {row['precision']:.2f} R {row['recall']:.2f} F1 {row['f1']:.2f}"
        )

    labels = final["labels"]
    lines.append("")
    lines.append("Validation confusion matrix (rows=true, cols=pred):")
    lines.append(" " * 11 + " ".join(f"{label[:3]:>3}" for label in labels))
    for label, row in zip(labels, final["confusion"]):
        lines.append(f"{label[:10]:<10} " + " ".join(f"{n:>3}" for n in row))
    lines.append("======================================")
    return "\n".join(lines)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Train the intent classifier and report metrics.")
    parser.add_argument("--corpus", type=Path, default=settings.intents_path)
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT)
    parser.add_argument("--epochs", type=int, default=settings.epochs)
    parser.add_argument("--seed", type=int, default=settings.random_seed)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config = replace(
        TrainingConfig.from_settings(get_settings()),
        epochs=args.epochs,
        random_seed=args.seed,
    )

    try:
        samples = load_samples(args.corpus)
        report = build_report(samples, config)
    except (OSError, ValueError) as exc:
        logger.error("training failed: %s", exc)
        return 1

    print(format_summary(report))

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(report, indent=2), encoding="utf-8")
    logger.info("done. Saved metrics to %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
