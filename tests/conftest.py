import pytest

from sportiq.config import DATA_DIR, get_settings
from sportiq.ml.classifier import TrainingConfig
from sportiq.ml.corpus import load_samples
from sportiq.ml.model_store import InMemoryModelStore
from sportiq.tools.knowledge_store import KnowledgeStore
from sportiq.tools.match_query import MatchQueryTool
from sportiq.tools.team_resolution_metrics import TeamResolutionMetrics


def pytest_configure(config):
    get_settings.cache_clear()


@pytest.fixture
def samples():
    return load_samples(DATA_DIR / "intents.json")


@pytest.fixture
def quick_config():
    return TrainingConfig(epochs=3)


@pytest.fixture
def model_store():
    return InMemoryModelStore()


@pytest.fixture
def knowledge_store():
    store = KnowledgeStore.from_seed_file(DATA_DIR / "seed.sql")
    yield store
    store.close()


@pytest.fixture
def metrics():
    return TeamResolutionMetrics()


@pytest.fixture
def match_tool(knowledge_store, metrics):
    return MatchQueryTool(knowledge_store, metrics=metrics)
