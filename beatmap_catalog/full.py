"""
単一ビートマップセットの詳細取得。

ページングや述語ビルダを経由せず、専用のクエリで行を取得して
materialize の組み立て処理へ渡す。ビートマップの切り詰めは行わない。
該当なしは例外ではなく None(または空リスト)で返す。
"""

from __future__ import annotations

import logging
from typing import Optional

from beatmap_catalog.db import QueryExecutor
from beatmap_catalog.materialize import (
    build_full_beatmapset,
    build_ratings,
    build_simple_beatmapset,
    build_single_rate,
)
from beatmap_catalog.models import Beatmapset, Rate, Rating, SimpleBeatmapset
from beatmap_catalog.normalize import to_int
from beatmap_catalog.predicates import CANONICAL_CENTIRATE

logger = logging.getLogger(__name__)

_RATING_COLUMNS = """
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

_RATE_COLUMNS = """
    r.id                     AS r_id,
    r.osu_hash               AS r_osu_hash,
    r.centirate              AS r_centirate,
    r.drain_time             AS r_drain_time,
    r.total_time             AS r_total_time,
    r.bpm                    AS r_bpm,
"""

_BEATMAPSET_COLUMNS = """
    bs.id                    AS bs_id,
    bs.osu_id                AS bs_osu_id,
    bs.artist                AS bs_artist,
    bs.artist_unicode        AS bs_artist_unicode,
    bs.title                 AS bs_title,
    bs.title_unicode         AS bs_title_unicode,
    bs.creator               AS bs_creator,
    bs.source                AS bs_source,
    bs.tags                  AS bs_tags,
    bs.has_video             AS bs_has_video,
    bs.has_storyboard        AS bs_has_storyboard,
    bs.is_explicit           AS bs_is_explicit,
    bs.is_featured           AS bs_is_featured,
    bs.cover_url             AS bs_cover_url,
    bs.preview_url           AS bs_preview_url,
    bs.osu_file_url          AS bs_osu_file_url,
"""

FULL_BEATMAPSET_SQL = (
    "SELECT"
    + _BEATMAPSET_COLUMNS
    + """
    bs.osu_status_changed_at AS bs_osu_status_changed_at,
    b.id                     AS b_id,
    b.osu_id                 AS b_osu_id,
    b.beatmapset_id          AS b_beatmapset_id,
    b.difficulty             AS b_difficulty,
    b.count_circles          AS b_count_circles,
    b.count_sliders          AS b_count_sliders,
    b.count_spinners         AS b_count_spinners,
    b.max_combo              AS b_max_combo,
    b.main_pattern           AS b_main_pattern,
    b.cs                     AS b_cs,
    b.ar                     AS b_ar,
    b.od                     AS b_od,
    b.hp                     AS b_hp,
    b.mode                   AS b_mode,
    b.status                 AS b_status,
"""
    + _RATE_COLUMNS
    + _RATING_COLUMNS
    + """
FROM beatmapset bs
INNER JOIN beatmap b ON bs.id = b.beatmapset_id
LEFT JOIN rates r ON r.beatmap_id = b.id
LEFT JOIN beatmap_rating br ON br.rates_id = r.id
LEFT JOIN beatmap_mania_rating bmr ON bmr.rating_id = br.id
WHERE bs.osu_id = ?
ORDER BY b.id ASC, r.id ASC, br.id ASC
"""
)

RATINGS_SQL = (
    "SELECT b.mode AS b_mode, r.id AS r_id,"
    + _RATING_COLUMNS
    + """
FROM beatmap b
INNER JOIN rates r ON r.beatmap_id = b.id AND r.centirate = ?
INNER JOIN beatmap_rating br ON br.rates_id = r.id
LEFT JOIN beatmap_mania_rating bmr ON bmr.rating_id = br.id
WHERE b.osu_id = ?
ORDER BY br.id ASC
"""
)

RATE_SQL = (
    "SELECT b.mode AS b_mode,"
    + _RATE_COLUMNS
    + _RATING_COLUMNS
    + """
FROM beatmap b
INNER JOIN rates r ON r.beatmap_id = b.id AND r.centirate = ?
LEFT JOIN beatmap_rating br ON br.rates_id = r.id
LEFT JOIN beatmap_mania_rating bmr ON bmr.rating_id = br.id
WHERE b.osu_id = ?
ORDER BY br.id ASC
"""
)

SIMPLE_BEATMAPSET_SQL = (
    "SELECT"
    + _BEATMAPSET_COLUMNS
    + """
    b.id                     AS b_id,
    b.osu_id                 AS b_osu_id,
    b.difficulty             AS b_difficulty,
    b.count_circles          AS b_count_circles,
    b.count_sliders          AS b_count_sliders,
    b.count_spinners         AS b_count_spinners,
    b.od                     AS b_od,
    b.hp                     AS b_hp,
    b.main_pattern           AS b_main_pattern,
    br.rating_type           AS br_rating_type,
    br.rating                AS br_rating
FROM beatmapset bs
INNER JOIN beatmap b ON bs.id = b.beatmapset_id
INNER JOIN rates r ON b.id = r.beatmap_id AND r.centirate = ?
LEFT JOIN beatmap_rating br ON r.id = br.rates_id
WHERE bs.osu_id = ?
AND (? IS NULL OR br.rating_type = ?)
ORDER BY b.osu_id, br.rating_type
"""
)


def find_full_by_osu_id(executor: QueryExecutor, osu_id: int) -> Optional[Beatmapset]:
    """
    osu_id でビートマップセットを取得し、完全な木を返す。

    全ビートマップ・全rate(centirate=100 に限らない)・全レーティングを含む。

    Args:
        executor: クエリ実行能力。
        osu_id: ビートマップセットの外部ID。

    Returns:
        Beatmapset。存在しない場合は None。
    """
    rows = executor.fetch_all(FULL_BEATMAPSET_SQL, (osu_id,))
    if not rows:
        logger.debug("beatmapset osu_id=%s not found", osu_id)
        return None
    return build_full_beatmapset(rows)


def find_ratings_by_osu_id_and_centirate(
    executor: QueryExecutor,
    beatmap_osu_id: int,
    centirate: int,
) -> list[Rating]:
    """ビートマップの osu_id と centirate に対応するレーティングを返す。該当なしは空リスト。"""
    rows = executor.fetch_all(RATINGS_SQL, (centirate, beatmap_osu_id))
    if not rows:
        return []
    return build_ratings(rows, to_int(rows[0].get("b_mode")))


def find_rate_by_osu_id_and_centirate(
    executor: QueryExecutor,
    beatmap_osu_id: int,
    centirate: int,
) -> Optional[Rate]:
    """
    ビートマップの osu_id と centirate に対応する rate をレーティング付きで返す。

    レーティングを持たない rate も返す(ratings は空)。存在しない場合は None。
    """
    rows = executor.fetch_all(RATE_SQL, (centirate, beatmap_osu_id))
    if not rows:
        return None
    return build_single_rate(rows, to_int(rows[0].get("b_mode")))


def find_simple_by_osu_id(
    executor: QueryExecutor,
    osu_id: int,
    rating_type: Optional[str] = None,
) -> Optional[SimpleBeatmapset]:
    """
    簡易表示用のビートマップセットを返す。

    正準rate(centirate=100)のレーティングのみを対象とし、
    rating_type が指定された場合はその種別に限定する。
    """
    rows = executor.fetch_all(
        SIMPLE_BEATMAPSET_SQL,
        (CANONICAL_CENTIRATE, osu_id, rating_type, rating_type),
    )
    if not rows:
        return None
    return build_simple_beatmapset(rows)
