from __future__ import annotations

import json
import os
import sqlite3
import sys
from pathlib import Path
from typing import Iterable, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from beatmap_catalog.db import SqliteExecutor, connect_db, init_schema


class CatalogSeeder:
    """テスト用SQLiteにカタログデータを投入するヘルパー。"""

    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def _insert(self, table: str, values: dict) -> int:
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        cur = self.con.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            tuple(values.values()),
        )
        self.con.commit()
        return int(cur.lastrowid)

    def beatmapset(
        self,
        osu_id: Optional[int],
        title: str = "Song",
        artist: str = "Artist",
        creator: str = "Mapper",
        **extra,
    ) -> int:
        values = {"osu_id": osu_id, "title": title, "artist": artist, "creator": creator}
        if "tags" in extra and not isinstance(extra["tags"], str):
            extra["tags"] = json.dumps(extra["tags"])
        values.update(extra)
        return self._insert("beatmapset", values)

    def beatmap(
        self,
        beatmapset_id: int,
        osu_id: Optional[int],
        difficulty: str = "Normal",
        mode: int = 0,
        status: str = "ranked",
        patterns: Iterable[str] = (),
        **extra,
    ) -> int:
        values = {
            "beatmapset_id": beatmapset_id,
            "osu_id": osu_id,
            "difficulty": difficulty,
            "mode": mode,
            "status": status,
            "main_pattern": json.dumps(list(patterns)),
        }
        values.update(extra)
        return self._insert("beatmap", values)

    def rate(
        self,
        beatmap_id: int,
        centirate: int = 100,
        drain_time: int = 120,
        total_time: int = 130,
        bpm: float = 180.0,
        osu_hash: Optional[str] = None,
    ) -> int:
        return self._insert(
            "rates",
            {
                "beatmap_id": beatmap_id,
                "centirate": centirate,
                "drain_time": drain_time,
                "total_time": total_time,
                "bpm": bpm,
                "osu_hash": osu_hash or f"hash-{beatmap_id}-{centirate}",
            },
        )

    def rating(self, rates_id: int, rating: float, rating_type: str = "osu") -> int:
        return self._insert(
            "beatmap_rating",
            {"rates_id": rates_id, "rating": rating, "rating_type": rating_type},
        )

    def mania(self, rating_id: int, **skills: float) -> int:
        values = {"rating_id": rating_id}
        values.update(skills)
        return self._insert("beatmap_mania_rating", values)

    def rated_beatmap(
        self,
        beatmapset_id: int,
        osu_id: Optional[int],
        score: Optional[float] = None,
        rating_type: str = "osu",
        rate_kwargs: Optional[dict] = None,
        **beatmap_kwargs,
    ) -> tuple[int, int, Optional[int]]:
        """正準rate付きのビートマップを作り、(beatmap_id, rate_id, rating_id) を返す。"""
        beatmap_id = self.beatmap(beatmapset_id, osu_id, **beatmap_kwargs)
        rate_id = self.rate(beatmap_id, **(rate_kwargs or {}))
        rating_id = None
        if score is not None:
            rating_id = self.rating(rate_id, score, rating_type)
        return beatmap_id, rate_id, rating_id


@pytest.fixture()
def db_connection():
    con = connect_db(":memory:")
    init_schema(con)
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def seeder(db_connection: sqlite3.Connection) -> CatalogSeeder:
    return CatalogSeeder(db_connection)


@pytest.fixture()
def executor(db_connection: sqlite3.Connection) -> SqliteExecutor:
    return SqliteExecutor(db_connection)


@pytest.fixture(scope="session")
def catalog_sqlite_path() -> Path:
    path = os.environ.get("CATALOG_SQLITE_PATH")
    if path:
        resolved = Path(path)
        if resolved.exists():
            return resolved.resolve()
        if os.environ.get("CI"):
            pytest.fail(f"CATALOG_SQLITE_PATH が存在しません: {resolved}")

    pytest.skip("カタログSQLiteが未指定のためスキップ")
