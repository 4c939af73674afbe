"""
경기 지식 저장소 (임베디드 SQLite).

시작 시 seed SQL을 한 번 적용한 뒤에는 읽기 전용으로 사용합니다.
조회 결과는 자유 형식 dict가 아니라 엔티티별 dataclass 행으로 매핑됩니다.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, List, Optional, Sequence, Type, TypeVar, Union

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound="_Row")


class _Row:
    @classmethod
    def from_row(cls: Type[RowT], row: sqlite3.Row) -> RowT:
        return cls(**{f.name: row[f.name] for f in fields(cls)})


@dataclass(frozen=True)
class Tournament(_Row):
    name: str
    season: str
    winner: Optional[str] = None


@dataclass(frozen=True)
class Match(_Row):
    id: int
    date: str
    kickoff: str
    home: str
    away: str
    stadium: str
    city: str
    sport: str
    home_goals: Optional[int]
    away_goals: Optional[int]
    is_today: bool

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Match":
        values = {f.name: row[f.name] for f in fields(cls)}
        values["is_today"] = bool(values["is_today"])
        return cls(**values)

    @property
    def is_played(self) -> bool:
        return self.home_goals is not None and self.away_goals is not None


@dataclass(frozen=True)
class Goal(_Row):
    match_id: int
    team: str
    scorer: str
    minute: int


@dataclass(frozen=True)
class Team(_Row):
    name: str
    alias1: Optional[str] = None
    alias2: Optional[str] = None

    @property
    def names(self) -> List[str]:
        return [n for n in (self.name, self.alias1, self.alias2) if n]


@dataclass(frozen=True)
class ScorerTally(_Row):
    scorer: str
    goals: int


class KnowledgeStore:
    """Thin wrapper over a seeded sqlite3 connection with typed row mapping."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        connection.row_factory = sqlite3.Row
        self.connection = connection
        self._lock = threading.RLock()

    @classmethod
    def from_seed_sql(cls, seed_sql: str) -> "KnowledgeStore":
        connection = sqlite3.connect(":memory:", check_same_thread=False)
        store = cls(connection)
        store.apply_seed(seed_sql)
        return store

    @classmethod
    def from_seed_file(cls, path: Union[str, Path]) -> "KnowledgeStore":
        return cls.from_seed_sql(Path(path).read_text(encoding="utf-8"))

    def apply_seed(self, seed_sql: str) -> None:
        with self._lock:
            self.connection.executescript(seed_sql)
            self.connection.commit()
        logger.info(
            "[KnowledgeStore] seeded tournaments=%s matches=%s goals=%s teams=%s",
            self.count("tournaments"),
            self.count("matches"),
            self.count("goals"),
            self.count("teams"),
        )

    def count(self, table: str) -> int:
        if table not in {"tournaments", "matches", "goals", "teams"}:
            raise ValueError(f"unknown table: {table}")
        with self._lock:
            return int(self.connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])

    def fetch_all(
        self, sql: str, params: Sequence[Any], row_type: Type[RowT]
    ) -> List[RowT]:
        with self._lock:
            rows = self.connection.execute(sql, tuple(params)).fetchall()
        return [row_type.from_row(row) for row in rows]

    def fetch_one(
        self, sql: str, params: Sequence[Any], row_type: Type[RowT]
    ) -> Optional[RowT]:
        rows = self.fetch_all(sql, params, row_type)
        return rows[0] if rows else None

    def teams(self) -> List[Team]:
        return self.fetch_all(
            "SELECT name, alias1, alias2 FROM teams ORDER BY rowid", (), Team
        )

    def today_reference_date(self) -> Optional[str]:
        with self._lock:
            row = self.connection.execute(
                "SELECT MAX(date) FROM matches WHERE is_today = 1"
            ).fetchone()
        return row[0] if row else None

    def close(self) -> None:
        with self._lock:
            self.connection.close()

