from collections import Counter
from unittest.mock import MagicMock

import numpy as np
import pytest

from sportiq.ml.classifier import (
    IntentClassifier,
    TrainingConfig,
    evaluate,
    stratified_split,
    train_intent_classifier,
)
from sportiq.ml.corpus import Sample, parse_samples
from sportiq.ml.errors import ModelNotReady, ModelShapeMismatch
from sportiq.ml.text_features import build_vocabulary_and_labels, vectorize


TINY_CORPUS = [
    Sample("score berlin", "latest_score"),
    Sample("what was the score", "latest_score"),
    Sample("final result please", "latest_score"),
    Sample("help me", "help"),
    Sample("what can you do", "help"),
    Sample("show me the options", "help"),
]


class TestStratifiedSplit:
    def test_every_intent_keeps_a_validation_sample(self, samples):
        _, labels = build_vocabulary_and_labels(samples)
        train, val = stratified_split(samples, labels, 0.2, 4243087)

        assert len(train) + len(val) == len(samples)
        val_counts = Counter(s.intent for s in val)
        train_counts = Counter(s.intent for s in train)
        for label in labels:
            assert val_counts[label] >= 1
            assert train_counts[label] >= 1

    def test_split_is_reproducible_for_same_seed(self, samples):
        _, labels = build_vocabulary_and_labels(samples)
        first = stratified_split(samples, labels, 0.2, 7)
        second = stratified_split(samples, labels, 0.2, 7)
        assert first == second

    def test_single_sample_intent_is_training_only(self):
        corpus = TINY_CORPUS + [Sample("who won the cup", "tournament_info")]
        _, labels = build_vocabulary_and_labels(corpus)
        train, val = stratified_split(corpus, labels, 0.2, 1)

        assert Sample("who won the cup", "tournament_info") in train
        assert all(s.intent != "tournament_info" for s in val)

    def test_validation_size_rounds_half_up(self):
        corpus = [Sample(f"score {i}", "latest_score") for i in range(10)] + [
            Sample(f"help {i}", "help") for i in range(3)
        ]
        _, labels = build_vocabulary_and_labels(corpus)
        _, val = stratified_split(corpus, labels, 0.2, 3)
        counts = Counter(s.intent for s in val)
        assert counts["latest_score"] == 2
        assert counts["help"] == 1


class TestIntentClassifier:
    def test_unfitted_classifier_is_not_ready(self):
        clf = IntentClassifier(["a", "b"], 3, TrainingConfig())
        with pytest.raises(ModelNotReady):
            clf.predict(np.zeros(3))
        assert clf.parameter_count == 0

    def test_wrong_input_width_raises_shape_mismatch(self):
        vocabulary, labels = build_vocabulary_and_labels(TINY_CORPUS)
        clf, _ = train_intent_classifier(
            TINY_CORPUS, vocabulary, labels, TrainingConfig(epochs=2)
        )
        with pytest.raises(ModelShapeMismatch) as excinfo:
            clf.predict(np.zeros(len(vocabulary) + 1))
        assert excinfo.value.expected == len(vocabulary)
        assert excinfo.value.actual == len(vocabulary) + 1

    def test_prediction_tie_goes_to_first_label(self):
        clf = IntentClassifier(["a", "b", "c"], 2, TrainingConfig())
        clf._fitted = True
        clf._model = MagicMock()
        clf._model.predict_proba.return_value = np.array([[0.4, 0.4, 0.2]])

        prediction = clf.predict(np.zeros(2))
        assert prediction.intent == "a"
        assert prediction.confidence == pytest.approx(0.4)

    def test_probabilities_form_a_distribution(self):
        vocabulary, labels = build_vocabulary_and_labels(TINY_CORPUS)
        clf, _ = train_intent_classifier(
            TINY_CORPUS, vocabulary, labels, TrainingConfig(epochs=3)
        )
        probs = clf.predict_proba(vectorize("score berlin", vocabulary))
        assert probs.shape == (1, 2)
        assert probs.sum() == pytest.approx(1.0)

        prediction = clf.predict(vectorize("unknown words only", vocabulary))
        assert prediction.intent in labels
        assert 0.0 <= prediction.confidence <= 1.0


class TestTraining:
    def test_report_tracks_each_epoch(self, samples):
        vocabulary, labels = build_vocabulary_and_labels(samples)
        config = TrainingConfig(epochs=4)
        clf, report = train_intent_classifier(samples, vocabulary, labels, config)

        assert len(report.history) == 4
        assert [e.epoch for e in report.history] == [1, 2, 3, 4]
        assert report.samples == len(samples)
        assert report.train_size + report.val_size == len(samples)
        assert report.vocab_size == len(vocabulary)
        assert report.intents == len(labels) == 10
        assert report.parameters == clf.parameter_count
        hidden = config.hidden_units
        assert clf.parameter_count == len(vocabulary) * hidden + hidden + hidden * 10 + 10
        assert report.accuracy == report.history[-1].val_accuracy
        assert report.loss == report.history[-1].val_loss

        payload = report.to_dict()
        assert payload["accuracy"] == report.accuracy
        assert payload["history"][0]["epoch"] == 1

    def test_full_corpus_is_learned(self, samples):
        vocabulary, labels = build_vocabulary_and_labels(samples)
        _, report = train_intent_classifier(samples, vocabulary, labels, TrainingConfig())
        assert report.history[-1].train_accuracy >= 0.7

    def test_training_is_deterministic(self):
        vocabulary, labels = build_vocabulary_and_labels(TINY_CORPUS)
        config = TrainingConfig(epochs=3)
        first, _ = train_intent_classifier(TINY_CORPUS, vocabulary, labels, config)
        second, _ = train_intent_classifier(TINY_CORPUS, vocabulary, labels, config)
        vec = vectorize("score please", vocabulary)
        assert np.allclose(first.predict_proba(vec), second.predict_proba(vec))

    def test_rejects_empty_vocabulary(self):
        with pytest.raises(ValueError):
            train_intent_classifier(TINY_CORPUS, [], ["help", "latest_score"], TrainingConfig())

    def test_rejects_single_label(self):
        corpus = [Sample("help", "help"), Sample("help me", "help")]
        vocabulary, labels = build_vocabulary_and_labels(corpus)
        with pytest.raises(ValueError):
            train_intent_classifier(corpus, vocabulary, labels, TrainingConfig())

    def test_rejects_unknown_intents(self):
        vocabulary, _ = build_vocabulary_and_labels(TINY_CORPUS)
        with pytest.raises(ValueError):
            train_intent_classifier(TINY_CORPUS, vocabulary, ["help", "other"], TrainingConfig())


class TestEvaluate:
    def test_confusion_matrix_covers_all_labels(self):
        vocabulary, labels = build_vocabulary_and_labels(TINY_CORPUS)
        clf, _ = train_intent_classifier(
            TINY_CORPUS, vocabulary, labels, TrainingConfig(epochs=3)
        )
        report = evaluate(clf, TINY_CORPUS, vocabulary)

        assert report.labels == labels
        assert len(report.confusion) == len(labels)
        assert all(len(row) == len(labels) for row in report.confusion)
        assert sum(sum(row) for row in report.confusion) == len(TINY_CORPUS)
        assert [m.intent for m in report.per_intent] == labels
        assert sum(m.support for m in report.per_intent) == len(TINY_CORPUS)
        assert report.to_dict()["per_intent"][0]["intent"] == labels[0]

    def test_undefined_metrics_default_to_zero(self):
        clf = IntentClassifier(["help", "latest_score"], 2, TrainingConfig())
        clf._fitted = True
        clf._model = MagicMock()
        # 항상 help로 예측: latest_score의 precision은 정의되지 않음
        clf._model.predict_proba.side_effect = lambda x: np.tile([0.9, 0.1], (len(x), 1))

        corpus = [Sample("help", "help"), Sample("score", "latest_score")]
        report = evaluate(clf, corpus, ["help", "score"])

        score_metrics = report.per_intent[1]
        assert score_metrics.precision == 0.0
        assert score_metrics.recall == 0.0
        assert score_metrics.f1 == 0.0
        assert report.accuracy == pytest.approx(0.5)
        assert report.confusion == [[1, 0], [1, 0]]

    def test_empty_evaluation_set(self):
        clf = IntentClassifier(["help", "latest_score"], 2, TrainingConfig())
        report = evaluate(clf, [], ["help", "score"])
        assert report.accuracy == 0.0
        assert report.confusion == [[0, 0], [0, 0]]
        assert report.macro_f1 == 0.0


def test_parse_samples_reports_bad_record_index():
    with pytest.raises(ValueError, match="#1"):
        parse_samples([{"text": "hi", "intent": "help"}, {"text": "", "intent": "help"}])
