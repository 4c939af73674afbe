import asyncio

import pytest

from sportiq.ml.classifier import IntentClassifier
from sportiq.ml.corpus import Sample
from sportiq.ml.errors import ModelNotReady, ModelShapeMismatch
from sportiq.ml.model_cache import ModelCacheManager
from sportiq.ml.model_store import FileModelStore, InMemoryModelStore
from sportiq.ml.text_features import build_vocabulary, model_key


def _manager(store, config, **kwargs):
    return ModelCacheManager(store, config=config, **kwargs)


class TestEnsureModel:
    @pytest.mark.asyncio
    async def test_first_call_trains_and_persists(self, samples, model_store, quick_config):
        manager = _manager(model_store, quick_config)
        handle = await manager.ensure_model(samples)

        assert handle.trained is True
        assert manager.train_count == 1
        assert manager.is_ready
        assert model_store.keys() == [handle.key]
        assert handle.key.startswith("sportiq_intent_v3_")
        assert handle.key.endswith(handle.signature)
        assert len(handle.labels) == 10

    @pytest.mark.asyncio
    async def test_same_corpus_does_not_retrain(self, samples, model_store, quick_config):
        manager = _manager(model_store, quick_config)
        first = await manager.ensure_model(samples)
        second = await manager.ensure_model(samples)

        assert second is first
        assert manager.train_count == 1

    @pytest.mark.asyncio
    async def test_restart_loads_persisted_model(self, samples, model_store, quick_config):
        first = await _manager(model_store, quick_config).ensure_model(samples)

        restarted = _manager(model_store, quick_config)
        handle = await restarted.ensure_model(samples)

        assert handle.trained is False
        assert handle.key == first.key
        assert restarted.train_count == 0

    @pytest.mark.asyncio
    async def test_vocabulary_change_purges_old_models(self, samples, model_store, quick_config):
        model_store.save("unrelated_artifact", {"keep": True})
        manager = _manager(model_store, quick_config)
        old = await manager.ensure_model(samples)

        extended = list(samples) + [Sample("zebra crossing", "help")]
        new = await manager.ensure_model(extended)

        assert new.key != old.key
        assert new.trained is True
        assert manager.train_count == 2
        assert sorted(model_store.keys()) == sorted([new.key, "unrelated_artifact"])

    @pytest.mark.asyncio
    async def test_label_change_with_same_vocabulary_retrains(
        self, samples, model_store, quick_config
    ):
        manager = _manager(model_store, quick_config)
        old = await manager.ensure_model(samples)

        relabelled = [
            Sample(s.text, "help" if s.intent == "tournament_info" else s.intent)
            for s in samples
        ]
        new = await manager.ensure_model(relabelled)

        assert new.key == old.key
        assert "tournament_info" not in new.labels
        assert manager.train_count == 2

    @pytest.mark.asyncio
    async def test_without_corpus_is_not_ready(self, model_store, quick_config):
        manager = _manager(model_store, quick_config)
        with pytest.raises(ModelNotReady):
            await manager.ensure_model()
        with pytest.raises(ModelNotReady):
            await manager.acquire()


class TestAcquireAndPredict:
    @pytest.mark.asyncio
    async def test_requests_during_startup_wait_for_model(
        self, samples, model_store, quick_config
    ):
        manager = _manager(model_store, quick_config)
        started, acquired = await asyncio.gather(
            manager.ensure_model(samples), manager.acquire()
        )

        assert acquired is started
        assert manager.train_count == 1

    @pytest.mark.asyncio
    async def test_requests_past_ready_timeout_are_rejected(
        self, samples, model_store, quick_config
    ):
        manager = _manager(model_store, quick_config, ready_timeout=0.0001)
        training = asyncio.ensure_future(manager.ensure_model(samples))
        await asyncio.sleep(0)

        with pytest.raises(ModelNotReady, match="still initializing"):
            await manager.acquire()

        # 거절된 요청과 무관하게 진행 중인 학습은 끝까지 완료됨
        handle = await training
        assert handle.trained is True
        assert manager.train_count == 1
        # 시간 초과로 버려진 대기 작업도 같은 모델로 끝남
        assert await manager._pending is handle
        assert await manager.acquire() is handle

    @pytest.mark.asyncio
    async def test_predict_returns_known_label(self, samples, model_store, quick_config):
        manager = _manager(model_store, quick_config)
        handle = await manager.ensure_model(samples)
        prediction = await manager.predict(handle, "where is the game being played")

        assert prediction.intent in handle.labels
        assert 0.0 <= prediction.confidence <= 1.0

    @pytest.mark.asyncio
    async def test_shape_mismatch_purges_and_forces_retrain(
        self, samples, model_store, quick_config
    ):
        await _manager(model_store, quick_config).ensure_model(samples)

        # 새 어휘의 키 아래에 이전 어휘로 학습된 모델이 남아 있는 상황
        extended = list(samples) + [Sample("zebra crossing quickly", "help")]
        stale = model_store.load(model_store.keys()[0])
        model_store.save(
            model_key(build_vocabulary(extended), "sportiq_intent_", "v3"), stale
        )

        manager = _manager(model_store, quick_config)
        handle = await manager.ensure_model(extended)
        assert handle.trained is False

        with pytest.raises(ModelShapeMismatch):
            await manager.predict(handle, "score berlin")

        assert manager.handle is None
        assert model_store.keys() == []

        fresh = await manager.acquire()
        assert fresh.trained is True
        assert manager.train_count == 1
        prediction = await manager.predict(fresh, "score berlin")
        assert prediction.intent in fresh.labels

    @pytest.mark.asyncio
    async def test_invalidate_keeps_foreign_keys(self, samples, model_store, quick_config):
        model_store.save("other_model", {"keep": True})
        manager = _manager(model_store, quick_config)
        await manager.ensure_model(samples)

        removed = await manager.invalidate()

        assert removed == 1
        assert manager.handle is None
        assert model_store.keys() == ["other_model"]


class TestFileModelStore:
    def test_save_load_delete(self, tmp_path):
        store = FileModelStore(tmp_path / "models")
        assert store.keys() == []
        assert store.load("missing") is None

        store.save("sportiq_intent_v3_1_abc", {"labels": ["a", "b"]})
        assert store.keys() == ["sportiq_intent_v3_1_abc"]
        assert store.load("sportiq_intent_v3_1_abc") == {"labels": ["a", "b"]}

        assert store.delete("sportiq_intent_v3_1_abc") is True
        assert store.delete("sportiq_intent_v3_1_abc") is False
        assert store.keys() == []

    def test_corrupted_file_is_a_miss(self, tmp_path):
        store = FileModelStore(tmp_path)
        (tmp_path / "broken.joblib").write_bytes(b"not a pickle")
        assert store.load("broken") is None

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden"])
    def test_rejects_unsafe_keys(self, tmp_path, key):
        with pytest.raises(ValueError):
            FileModelStore(tmp_path).save(key, {})

    @pytest.mark.asyncio
    async def test_trained_classifier_survives_round_trip(self, tmp_path, samples, quick_config):
        store = FileModelStore(tmp_path)
        handle = await _manager(store, quick_config).ensure_model(samples)

        artifact = store.load(handle.key)
        assert isinstance(artifact["classifier"], IntentClassifier)
        assert artifact["labels"] == list(handle.labels)

        reloaded = await _manager(store, quick_config).ensure_model(samples)
        assert reloaded.trained is False


def test_in_memory_store_keys_are_sorted():
    store = InMemoryModelStore()
    store.save("b", 1)
    store.save("a", 2)
    assert store.keys() == ["a", "b"]
    assert store.delete("a") is True
    assert store.delete("a") is False
