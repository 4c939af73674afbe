"""
학습된 의도 모델을 키 단위로 저장/조회/삭제하는 저장소 모듈.

캐시 매니저는 이 인터페이스에만 의존하므로 파일, 임베디드 DB, 원격 캐시
어느 쪽으로도 교체할 수 있습니다.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import joblib

logger = logging.getLogger(__name__)


class ModelStore(Protocol):
    def load(self, key: str) -> Optional[Any]:
        ...

    def save(self, key: str, artifact: Any) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...

    def keys(self) -> List[str]:
        ...


class InMemoryModelStore:
    """Process-local store, used by tests and ephemeral deployments."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: Dict[str, Any] = {}

    def load(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._items.get(key)

    def save(self, key: str, artifact: Any) -> None:
        with self._lock:
            self._items[key] = artifact

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._items)


class FileModelStore:
    """One joblib file per key under ``root``."""

    SUFFIX = ".joblib"

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"invalid model key: {key!r}")
        return self.root / f"{key}{self.SUFFIX}"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return joblib.load(path)
        except Exception as exc:  # noqa: BLE001
            # 손상되었거나 호환되지 않는 파일은 캐시 미스로 취급
            logger.warning("[FileModelStore] failed to load %s: %s", path, exc)
            return None

    def save(self, key: str, artifact: Any) -> None:
        path = self._path(key)
        self.root.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        joblib.dump(artifact, tmp_path)
        tmp_path.replace(path)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def keys(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(p.name[: -len(self.SUFFIX)] for p in self.root.glob(f"*{self.SUFFIX}"))
