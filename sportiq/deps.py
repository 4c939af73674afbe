"""FastAPI 의존성 주입과 서비스 구성요소 생성을 담당하는 모듈."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional

import structlog

from .agents.sports_agent import SportsQuestionAgent
from .config import Settings, get_settings
from .core.logging_config import configure_logging
from .core.polish import ReplyPolisher
from .ml.corpus import Sample, load_samples
from .ml.intent_router import IntentRouter
from .ml.model_cache import ModelCacheManager
from .ml.model_store import FileModelStore, ModelStore
from .tools.knowledge_store import KnowledgeStore
from .tools.match_query import MatchQueryTool

log = structlog.get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    samples: List[Sample]
    store: KnowledgeStore
    models: ModelCacheManager
    agent: SportsQuestionAgent
    polisher: ReplyPolisher

    def close(self) -> None:
        self.store.close()


# 전역 서비스 컨테이너 (앱 시작 시 한 번만 생성)
_container: Optional[ServiceContainer] = None


def build_container(
    settings: Optional[Settings] = None,
    model_store: Optional[ModelStore] = None,
) -> ServiceContainer:
    """코퍼스/seed 데이터를 읽고 구성요소를 연결합니다. 모델 학습은 하지 않습니다."""
    settings = settings or get_settings()
    samples = load_samples(settings.intents_path)
    store = KnowledgeStore.from_seed_file(settings.seed_sql_path)
    models = ModelCacheManager.from_settings(
        settings, model_store or FileModelStore(settings.model_cache_dir)
    )
    agent = SportsQuestionAgent(
        router=IntentRouter(),
        models=models,
        queries=MatchQueryTool(store, reference_date=settings.reference_date),
        confidence_threshold=settings.confidence_threshold,
    )
    return ServiceContainer(
        settings=settings,
        samples=samples,
        store=store,
        models=models,
        agent=agent,
        polisher=ReplyPolisher.from_settings(settings),
    )


def get_container() -> ServiceContainer:
    global _container

    if _container is None:
        _container = build_container()
    return _container


def set_container(container: Optional[ServiceContainer]) -> None:
    global _container
    _container = container


async def start_container(container: ServiceContainer) -> None:
    handle = await container.models.ensure_model(container.samples)
    log.info(
        "intent_model_ready",
        key=handle.key,
        trained=handle.trained,
        vocab=len(handle.vocabulary),
        intents=len(handle.labels),
        accuracy=round(handle.report.accuracy, 4),
        loss=round(handle.report.loss, 4),
    )


def close_container() -> None:
    global _container
    if _container is not None:
        _container.close()
        _container = None


@asynccontextmanager
async def lifespan(app):
    """앱 시작/종료 시 실행되는 lifespan 이벤트"""
    # 시작 시: 지식 저장소 seed, 모델 로드 또는 학습 완료 후 요청 처리
    configure_logging()
    container = get_container()
    await start_container(container)

    yield

    # 종료 시
    close_container()


def get_agent() -> SportsQuestionAgent:
    return get_container().agent


def get_polisher() -> ReplyPolisher:
    return get_container().polisher


async def respond(text: str) -> str:
    """UI/프레젠테이션 계층이 호출하는 단일 진입점."""
    return await get_agent().respond(text)
