"""
SQLiteへのクエリ実行処理を提供するモジュール。

検索エンジンはストアへのアクセスを QueryExecutor(パラメータ化SQLの実行能力)
としてのみ扱う。本モジュールはその SQLite 実装と、ローカル開発・テスト用の
スキーマ初期化を提供する。

処理方針:
- 値はすべてプレースホルダでバインドする
- 検索語の照合に使う fold_case 関数を接続ごとに登録する
- 行はカラム名でアクセスできる dict として返す(NULL は None)
- 通信・SQLエラー(sqlite3.Error)は包まずにそのまま送出する
- トランザクション管理・リトライは行わない(各クエリは独立した読み取り)
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional, Protocol, Sequence

from beatmap_catalog.normalize import fold_case

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class QueryExecutor(Protocol):
    """パラメータ化SQLを実行し、行またはスカラーを返す能力。"""

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        ...

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        ...

    def fetch_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        ...


def connect_db(path: str) -> sqlite3.Connection:
    """
    SQLite DBへ接続する。

    Args:
        path: SQLiteファイルパス(":memory:" 可)。

    Returns:
        sqlite3.Connectionオブジェクト。
    """
    con = sqlite3.connect(path)
    con.row_factory = sqlite3.Row
    register_functions(con)
    return con


def register_functions(con: sqlite3.Connection) -> None:
    """
    検索クエリが使用するSQL関数を接続に登録する。

    - fold_case(text): Unicode対応の大文字小文字畳み込み(NFKC + casefold)
    """
    con.create_function("fold_case", 1, fold_case, deterministic=True)


class SqliteExecutor:
    """
    sqlite3.Connection を用いた QueryExecutor 実装。

    Args:
        con: SQLite接続。row_factory は sqlite3.Row を想定する。
    """

    def __init__(self, con: sqlite3.Connection) -> None:
        self._con = con
        if self._con.row_factory is None:
            self._con.row_factory = sqlite3.Row
        register_functions(self._con)

    @classmethod
    def open(cls, path: str) -> "SqliteExecutor":
        return cls(connect_db(path))

    @property
    def connection(self) -> sqlite3.Connection:
        return self._con

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        logger.debug("fetch_all: %s params=%r", sql, params)
        cur = self._con.execute(sql, tuple(params))
        try:
            return [dict(row) for row in cur.fetchall()]
        finally:
            cur.close()

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        logger.debug("fetch_one: %s params=%r", sql, params)
        cur = self._con.execute(sql, tuple(params))
        try:
            row = cur.fetchone()
        finally:
            cur.close()
        return None if row is None else dict(row)

    def fetch_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        row = self.fetch_one(sql, params)
        if row is None:
            return None
        return next(iter(row.values()), None)

    def interrupt(self) -> None:
        """
        実行中のクエリを中断する。

        呼び出し元のリクエストが中断された場合に別スレッドから呼び出す。
        中断されたクエリは sqlite3.OperationalError として呼び出し元へ伝播する。
        """
        self._con.interrupt()

    def close(self) -> None:
        self._con.close()

    def __enter__(self) -> "SqliteExecutor":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def init_schema(con: sqlite3.Connection) -> None:
    """
    DBスキーマを初期化する。

    beatmapset/beatmap/rates/beatmap_rating/beatmap_mania_rating
    テーブルが存在しない場合に作成する。
    cs/ar/od/hp/bpm/rating 等の小数は NUMERIC で保持し、読み取り時に float へ変換する。

    Args:
        con: SQLite接続。
    """
    cur = con.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS beatmapset (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        osu_id INTEGER NULL UNIQUE,
        artist TEXT NOT NULL DEFAULT '',
        artist_unicode TEXT NULL,
        title TEXT NOT NULL DEFAULT '',
        title_unicode TEXT NULL,
        creator TEXT NOT NULL DEFAULT '',
        source TEXT NULL,
        tags TEXT NULL,
        has_video INTEGER NOT NULL DEFAULT 0,
        has_storyboard INTEGER NOT NULL DEFAULT 0,
        is_explicit INTEGER NOT NULL DEFAULT 0,
        is_featured INTEGER NOT NULL DEFAULT 0,
        cover_url TEXT NULL,
        preview_url TEXT NULL,
        osu_file_url TEXT NULL,
        osu_status_changed_at TEXT NULL
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS beatmap (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        osu_id INTEGER NULL UNIQUE,
        beatmapset_id INTEGER NOT NULL,
        difficulty TEXT NOT NULL DEFAULT '',
        count_circles INTEGER NOT NULL DEFAULT 0,
        count_sliders INTEGER NOT NULL DEFAULT 0,
        count_spinners INTEGER NOT NULL DEFAULT 0,
        max_combo INTEGER NOT NULL DEFAULT 0,
        main_pattern TEXT NOT NULL DEFAULT '[]',
        cs NUMERIC NOT NULL DEFAULT 0,
        ar NUMERIC NOT NULL DEFAULT 0,
        od NUMERIC NOT NULL DEFAULT 0,
        hp NUMERIC NOT NULL DEFAULT 0,
        mode INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'pending',
        FOREIGN KEY(beatmapset_id) REFERENCES beatmapset(id)
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS rates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        beatmap_id INTEGER NOT NULL,
        osu_hash TEXT NULL,
        centirate INTEGER NOT NULL,
        drain_time INTEGER NOT NULL DEFAULT 0,
        total_time INTEGER NOT NULL DEFAULT 0,
        bpm NUMERIC NOT NULL DEFAULT 0,
        UNIQUE(beatmap_id, centirate),
        FOREIGN KEY(beatmap_id) REFERENCES beatmap(id)
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS beatmap_rating (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        rates_id INTEGER NOT NULL,
        rating NUMERIC NOT NULL,
        rating_type TEXT NOT NULL,
        UNIQUE(rates_id, rating_type),
        FOREIGN KEY(rates_id) REFERENCES rates(id)
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS beatmap_mania_rating (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        rating_id INTEGER NOT NULL UNIQUE,
        stream NUMERIC NULL,
        jumpstream NUMERIC NULL,
        handstream NUMERIC NULL,
        stamina NUMERIC NULL,
        jackspeed NUMERIC NULL,
        chordjack NUMERIC NULL,
        technical NUMERIC NULL,
        FOREIGN KEY(rating_id) REFERENCES beatmap_rating(id)
    )
    """)

    cur.execute("CREATE INDEX IF NOT EXISTS idx_beatmap_beatmapset ON beatmap(beatmapset_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_rates_centirate ON rates(centirate, beatmap_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_rating_rates ON beatmap_rating(rates_id)")

    con.commit()
