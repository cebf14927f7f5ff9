"""
ルーティング層へ公開する検索エンジンの窓口。

リクエストごとに独立した処理単位として呼び出されることを想定し、
インスタンスはクエリ実行能力と設定以外の状態を持たない。
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from beatmap_catalog import full, search
from beatmap_catalog.config import SearchConfig
from beatmap_catalog.db import QueryExecutor
from beatmap_catalog.filters import Filters
from beatmap_catalog.models import (
    Beatmapset,
    BeatmapsetSummary,
    Rate,
    Rating,
    SimpleBeatmapset,
)

FilterInput = Union[Filters, Mapping[str, Any], None]


def _filters(value: FilterInput) -> Filters:
    if isinstance(value, Filters):
        return value
    return Filters.from_dict(value)


class BeatmapCatalog:
    """
    ビートマップカタログの検索・詳細取得。

    Args:
        executor: クエリ実行能力。
        config: 検索設定。None の場合は既定値。
    """

    def __init__(self, executor: QueryExecutor, config: Optional[SearchConfig] = None) -> None:
        self.executor = executor
        self.config = config if config is not None else SearchConfig()

    def search(self, filters: FilterInput = None) -> list[BeatmapsetSummary]:
        """ページ単位の検索結果(ビートマップセットID昇順)を返す。"""
        return search.find_all_with_filters(self.executor, _filters(filters), self.config)

    def count(self, filters: FilterInput = None) -> int:
        """条件に一致するビートマップセット数を返す(page / per_page は無視)。"""
        return search.count_with_filters(self.executor, _filters(filters))

    def random_sample(self, filters: FilterInput = None) -> list[BeatmapsetSummary]:
        """条件に一致するビートマップセットを無作為に返す(page / per_page は無視)。"""
        return search.find_random_with_filters(self.executor, _filters(filters), self.config)

    def load_full(self, osu_id: int) -> Optional[Beatmapset]:
        return full.find_full_by_osu_id(self.executor, osu_id)

    def load_simple(self, osu_id: int, rating_type: Optional[str] = None) -> Optional[SimpleBeatmapset]:
        return full.find_simple_by_osu_id(self.executor, osu_id, rating_type)

    def ratings_for(self, beatmap_osu_id: int, centirate: int) -> list[Rating]:
        return full.find_ratings_by_osu_id_and_centirate(self.executor, beatmap_osu_id, centirate)

    def rate_for(self, beatmap_osu_id: int, centirate: int) -> Optional[Rate]:
        return full.find_rate_by_osu_id_and_centirate(self.executor, beatmap_osu_id, centirate)
