"""서비스 환경설정을 관리하는 Pydantic 설정 모듈."""

from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).parent / "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        protected_namespaces=(),
    )

    app_name: str = "SportIQ"
    debug: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Corpus / seed data
    intents_path: Path = DATA_DIR / "intents.json"
    seed_sql_path: Path = DATA_DIR / "seed.sql"

    # Model cache
    model_cache_dir: Path = Path(".model_cache")
    model_key_prefix: str = "sportiq_intent_"
    model_key_version: str = "v3"
    model_ready_timeout_seconds: float = 30.0

    # Classifier
    confidence_threshold: float = 0.45
    hidden_units: int = 32
    learning_rate: float = 0.01
    epochs: int = 25
    batch_size: int = 8
    validation_ratio: float = 0.2
    random_seed: int = 4243087
    l2_penalty: float = 1e-4

    # Knowledge store
    reference_date: Optional[date] = None

    # Reply polishing (OpenRouter)
    polish_enabled: bool = False
    openrouter_api_key: Optional[str] = None
    openrouter_model: str = "deepseek/deepseek-chat-v3.1:free"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    polish_timeout_seconds: float = 10.0
    polish_max_tokens: int = 80

    @field_validator("confidence_threshold")
    def _validate_confidence_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError(
                f"CONFIDENCE_THRESHOLD must be within [0, 1], got {value}"
            )
        return value

    @field_validator("validation_ratio")
    def _validate_validation_ratio(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ValueError(f"VALIDATION_RATIO must be within (0, 1), got {value}")
        return value

    @property
    def cors_allowed_origins(self) -> List[str]:
        return self.cors_origins


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
