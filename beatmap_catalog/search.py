"""
検索条件によるビートマップセット検索(2段階取得)。

1段階目で条件に一致するビートマップセットIDだけを DISTINCT で取得し、
2段階目でそのIDに限定した詳細行を取得する。
JOINによる行の増幅(セット → ビートマップ → rate → レーティング)が
ページ境界や件数を壊さないようにするため、ページングは必ず1段階目で行う。

件数・候補ID・詳細の3クエリは predicates の同じ関数で組み立てる。
"""

from __future__ import annotations

import logging
from typing import Optional

from beatmap_catalog.config import SearchConfig
from beatmap_catalog.db import QueryExecutor, Row
from beatmap_catalog.filters import Filters
from beatmap_catalog.materialize import group_beatmapset_rows, order_by_ids
from beatmap_catalog.models import BeatmapsetSummary
from beatmap_catalog.predicates import apply_filters, push_filtered_from
from beatmap_catalog.query_builder import QueryBuilder
from beatmap_catalog.subset import preferred_rating_type, sort_and_limit_beatmaps

logger = logging.getLogger(__name__)

DETAIL_COLUMNS = """
    bs.id                    AS bs_id,
    bs.osu_id                AS bs_osu_id,
    bs.artist                AS bs_artist,
    bs.title                 AS bs_title,
    bs.creator               AS bs_creator,
    bs.cover_url             AS bs_cover_url,
    b.id                     AS b_id,
    b.osu_id                 AS b_osu_id,
    b.difficulty             AS b_difficulty,
    b.mode                   AS b_mode,
    b.status                 AS b_status,
    b.main_pattern           AS b_main_pattern,
    b.od                     AS b_od,
    r.id                     AS r_id,
    r.drain_time             AS r_drain_time,
    br.id                    AS br_id,
    br.rates_id              AS br_rates_id,
    br.rating                AS br_rating,
    br.rating_type           AS br_rating_type,
    bmr.id                   AS bmr_id,
    bmr.stream               AS bmr_stream,
    bmr.jumpstream           AS bmr_jumpstream,
    bmr.handstream           AS bmr_handstream,
    bmr.stamina              AS bmr_stamina,
    bmr.jackspeed            AS bmr_jackspeed,
    bmr.chordjack            AS bmr_chordjack,
    bmr.technical            AS bmr_technical
"""


def _config(config: Optional[SearchConfig]) -> SearchConfig:
    return config if config is not None else SearchConfig()


def count_with_filters(executor: QueryExecutor, filters: Filters) -> int:
    """
    条件に一致するビートマップセットの件数を返す。

    page / per_page には依存しない。
    """
    builder = QueryBuilder("SELECT COUNT(DISTINCT bs.id) AS total")
    push_filtered_from(builder, filters)
    apply_filters(builder, filters)

    total = executor.fetch_scalar(*builder.build())
    return int(total or 0)


def find_candidate_ids(
    executor: QueryExecutor,
    filters: Filters,
    config: Optional[SearchConfig] = None,
) -> list[int]:
    """
    ページに対応するビートマップセットIDを id 昇順で返す。

    Args:
        executor: クエリ実行能力。
        filters: 検索条件(page / per_page を含む)。
        config: 検索設定(per_page 既定値)。

    Returns:
        ビートマップセットIDのリスト。
    """
    per_page = filters.per_page_or(_config(config).default_per_page)
    offset = filters.page_or_default() * per_page

    builder = QueryBuilder("SELECT DISTINCT bs.id AS id")
    push_filtered_from(builder, filters)
    apply_filters(builder, filters)
    builder.push(" ORDER BY bs.id LIMIT ").push_bind(per_page)
    builder.push(" OFFSET ").push_bind(offset)

    return [int(row["id"]) for row in executor.fetch_all(*builder.build())]


def find_random_candidate_ids(
    executor: QueryExecutor,
    filters: Filters,
    config: Optional[SearchConfig] = None,
) -> list[int]:
    """
    条件に一致するビートマップセットIDを無作為に最大 random_sample_size 件返す。

    page / per_page は無視する。
    """
    builder = QueryBuilder("SELECT id FROM (SELECT DISTINCT bs.id AS id")
    push_filtered_from(builder, filters)
    apply_filters(builder, filters)
    builder.push(") AS filtered_ids ORDER BY RANDOM() LIMIT ")
    builder.push_bind(_config(config).random_sample_size)

    return [int(row["id"]) for row in executor.fetch_all(*builder.build())]


def fetch_detail_rows(
    executor: QueryExecutor,
    filters: Filters,
    beatmapset_ids: list[int],
) -> list[Row]:
    """
    候補IDに限定して、組み立てに必要な全カラムの行を取得する。

    候補IDが空の場合はクエリを発行せず空リストを返す。
    """
    if not beatmapset_ids:
        return []

    builder = QueryBuilder("SELECT" + DETAIL_COLUMNS)
    push_filtered_from(builder, filters)
    apply_filters(builder, filters)
    builder.push(" AND bs.id IN ").push_bind_list(beatmapset_ids)
    builder.push(" ORDER BY bs.id, b.id, br.id")

    return executor.fetch_all(*builder.build())


def _materialize(
    executor: QueryExecutor,
    filters: Filters,
    beatmapset_ids: list[int],
    config: SearchConfig,
) -> list[BeatmapsetSummary]:
    if not beatmapset_ids:
        return []

    rows = fetch_detail_rows(executor, filters, beatmapset_ids)
    logger.debug("detail rows: %d for %d beatmapsets", len(rows), len(beatmapset_ids))

    beatmapsets = group_beatmapset_rows(rows)
    preferred = preferred_rating_type(filters, config.default_rating_type)
    sort_and_limit_beatmaps(beatmapsets.values(), preferred, config.summary_beatmap_limit)

    return order_by_ids(beatmapsets, beatmapset_ids)


def find_all_with_filters(
    executor: QueryExecutor,
    filters: Filters,
    config: Optional[SearchConfig] = None,
) -> list[BeatmapsetSummary]:
    """
    条件に一致するビートマップセットをページ単位で返す。

    返却順はビートマップセットIDの昇順。各セットのビートマップは
    代表数件に絞り込まれ、total_beatmaps に絞り込み前の件数が入る。

    Args:
        executor: クエリ実行能力。
        filters: 検索条件。
        config: 検索設定。

    Returns:
        BeatmapsetSummary のリスト。該当なしは空リスト。
    """
    config = _config(config)
    ids = find_candidate_ids(executor, filters, config)
    logger.debug("candidate beatmapsets: %d", len(ids))
    return _materialize(executor, filters, ids, config)


def find_random_with_filters(
    executor: QueryExecutor,
    filters: Filters,
    config: Optional[SearchConfig] = None,
) -> list[BeatmapsetSummary]:
    """条件に一致するビートマップセットを無作為に最大 random_sample_size 件返す。"""
    config = _config(config)
    ids = find_random_candidate_ids(executor, filters, config)
    logger.debug("random candidate beatmapsets: %d", len(ids))
    return _materialize(executor, filters, ids, config)
