"""
フラットなクエリ結果行を入れ子の集約へ組み立てるモジュール。

行は JOIN による展開(セット → ビートマップ → rate → レーティング)を含むため、
同じ親が複数行に現れる。親は識別子をキーにした挿入順の辞書で一度だけ生成し、
以降の行はその親へマージする(行の並び順には依存しない)。
親の属性は最初に現れた行から取得する。

カラム名は接頭辞で階層を表す:
bs_*(beatmapset) / b_*(beatmap) / r_*(rates) / br_*(beatmap_rating) / bmr_*(mania rating)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from beatmap_catalog.errors import MalformedResultError
from beatmap_catalog.models import (
    Beatmap,
    Beatmapset,
    BeatmapsetSummary,
    BeatmapSummary,
    ManiaRating,
    ModeRating,
    Rate,
    Rating,
    RatingInfo,
    SimpleBeatmap,
    SimpleBeatmapset,
    default_mode_rating,
)
from beatmap_catalog.normalize import (
    parse_pattern_set,
    parse_tags,
    to_bool,
    to_float,
    to_int,
)

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]


def require_id(row: Row, column: str) -> int:
    """
    識別子カラムの値を取得する。

    Raises:
        MalformedResultError: カラムが存在しない、または NULL の場合。
    """
    if column not in row or row[column] is None:
        raise MalformedResultError(f"結果行に識別子カラム {column} がありません")
    return int(row[column])


def build_mode_rating(row: Row, mode: int) -> ModeRating:
    """
    行から ModeRating を組み立てる。

    maniaのスキルセット行(bmr_id)がある場合は ManiaRating、
    ない場合はプレイモードに応じた既定値(maniaはゼロ値)を返す。
    """
    if row.get("bmr_id") is None:
        return default_mode_rating(mode)
    return ManiaRating(
        id=to_int(row.get("bmr_id")),
        stream=to_float(row.get("bmr_stream")),
        jumpstream=to_float(row.get("bmr_jumpstream")),
        handstream=to_float(row.get("bmr_handstream")),
        stamina=to_float(row.get("bmr_stamina")),
        jackspeed=to_float(row.get("bmr_jackspeed")),
        chordjack=to_float(row.get("bmr_chordjack")),
        technical=to_float(row.get("bmr_technical")),
    )


def build_rating(row: Row, mode: int) -> Optional[Rating]:
    """行にレーティングがあれば Rating を返す。br_id が NULL の行は None。"""
    if row.get("br_id") is None:
        return None
    rates_id = row.get("br_rates_id")
    if rates_id is None:
        rates_id = row.get("r_id")
    return Rating(
        id=int(row["br_id"]),
        rates_id=None if rates_id is None else int(rates_id),
        rating=to_float(row.get("br_rating")),
        rating_type=str(row.get("br_rating_type") or ""),
        mode_rating=build_mode_rating(row, mode),
    )


def _summary_beatmapset(beatmapset_id: int, row: Row) -> BeatmapsetSummary:
    return BeatmapsetSummary(
        id=beatmapset_id,
        osu_id=row.get("bs_osu_id"),
        artist=row.get("bs_artist") or "",
        title=row.get("bs_title") or "",
        creator=row.get("bs_creator") or "",
        cover_url=row.get("bs_cover_url"),
    )


def _summary_beatmap(beatmap_id: int, row: Row) -> BeatmapSummary:
    return BeatmapSummary(
        id=beatmap_id,
        osu_id=row.get("b_osu_id"),
        difficulty=row.get("b_difficulty") or "",
        mode=to_int(row.get("b_mode")),
        status=row.get("b_status") or "",
        main_pattern=parse_pattern_set(row.get("b_main_pattern")),
    )


def group_beatmapset_rows(rows: Iterable[Row]) -> dict[int, BeatmapsetSummary]:
    """
    検索結果の行をビートマップセット単位にまとめる。

    rate階層は出力に含めず、レーティングはビートマップへ直接追加する。
    同じレーティングIDが複数行に現れても1件として扱う。
    レーティングが NULL の行はビートマップの存在のみを保証する。

    Args:
        rows: 詳細取得クエリの結果行。

    Returns:
        beatmapset.id → BeatmapsetSummary の挿入順辞書。

    Raises:
        MalformedResultError: bs_id / b_id が欠けている行があった場合。
    """
    beatmapsets: dict[int, BeatmapsetSummary] = {}
    beatmaps: dict[int, BeatmapSummary] = {}
    seen_ratings: set[tuple[int, int]] = set()

    for row in rows:
        beatmapset_id = require_id(row, "bs_id")
        beatmap_id = require_id(row, "b_id")

        beatmapset = beatmapsets.get(beatmapset_id)
        if beatmapset is None:
            beatmapset = _summary_beatmapset(beatmapset_id, row)
            beatmapsets[beatmapset_id] = beatmapset

        beatmap = beatmaps.get(beatmap_id)
        if beatmap is None:
            beatmap = _summary_beatmap(beatmap_id, row)
            beatmaps[beatmap_id] = beatmap
            beatmapset.beatmaps.append(beatmap)

        rating = build_rating(row, beatmap.mode)
        if rating is None:
            continue
        key = (beatmap_id, rating.id)
        if key in seen_ratings:
            continue
        seen_ratings.add(key)
        beatmap.ratings.append(rating)

    return beatmapsets


def order_by_ids(
    beatmapsets: Mapping[int, BeatmapsetSummary],
    ids: Sequence[int],
) -> list[BeatmapsetSummary]:
    """候補IDの並び順で結果を返す。結果に存在しないIDは無視する。"""
    return [beatmapsets[i] for i in ids if i in beatmapsets]


def _full_beatmapset(row: Row) -> Beatmapset:
    return Beatmapset(
        id=require_id(row, "bs_id"),
        osu_id=row.get("bs_osu_id"),
        artist=row.get("bs_artist") or "",
        artist_unicode=row.get("bs_artist_unicode"),
        title=row.get("bs_title") or "",
        title_unicode=row.get("bs_title_unicode"),
        creator=row.get("bs_creator") or "",
        source=row.get("bs_source"),
        tags=parse_tags(row.get("bs_tags")),
        has_video=to_bool(row.get("bs_has_video")),
        has_storyboard=to_bool(row.get("bs_has_storyboard")),
        is_explicit=to_bool(row.get("bs_is_explicit")),
        is_featured=to_bool(row.get("bs_is_featured")),
        cover_url=row.get("bs_cover_url"),
        preview_url=row.get("bs_preview_url"),
        osu_file_url=row.get("bs_osu_file_url"),
        osu_status_changed_at=row.get("bs_osu_status_changed_at"),
    )


def _full_beatmap(beatmap_id: int, row: Row) -> Beatmap:
    return Beatmap(
        id=beatmap_id,
        osu_id=row.get("b_osu_id"),
        beatmapset_id=row.get("b_beatmapset_id"),
        difficulty=row.get("b_difficulty") or "",
        count_circles=to_int(row.get("b_count_circles")),
        count_sliders=to_int(row.get("b_count_sliders")),
        count_spinners=to_int(row.get("b_count_spinners")),
        max_combo=to_int(row.get("b_max_combo")),
        cs=to_float(row.get("b_cs")),
        ar=to_float(row.get("b_ar")),
        od=to_float(row.get("b_od")),
        hp=to_float(row.get("b_hp")),
        mode=to_int(row.get("b_mode")),
        status=row.get("b_status") or "",
        main_pattern=parse_pattern_set(row.get("b_main_pattern")),
    )


def build_rate(row: Row) -> Rate:
    """r_* カラムから Rate を組み立てる(レーティングは空)。"""
    return Rate(
        id=require_id(row, "r_id"),
        osu_hash=row.get("r_osu_hash"),
        centirate=to_int(row.get("r_centirate")),
        drain_time=to_int(row.get("r_drain_time")),
        total_time=to_int(row.get("r_total_time")),
        bpm=to_float(row.get("r_bpm")),
    )


def build_full_beatmapset(rows: Sequence[Row]) -> Optional[Beatmapset]:
    """
    1つのビートマップセットの全行から、切り詰めなしの完全な木を組み立てる。

    ビートマップ・rate・レーティングはそれぞれIDで一意化する。
    rate や レーティングが NULL の行(外部結合)は上位の存在のみを保証する。

    Args:
        rows: 同一ビートマップセットの結果行。

    Returns:
        Beatmapset。行が空の場合は None。

    Raises:
        MalformedResultError: bs_id / b_id が欠けている行があった場合。
    """
    if not rows:
        return None

    beatmapset = _full_beatmapset(rows[0])
    beatmaps: dict[int, Beatmap] = {}
    rates: dict[int, Rate] = {}
    seen_ratings: set[int] = set()

    for row in rows:
        if require_id(row, "bs_id") != beatmapset.id:
            raise MalformedResultError("1つのビートマップセットの結果に別のセットの行が含まれています")

        beatmap_id = require_id(row, "b_id")
        beatmap = beatmaps.get(beatmap_id)
        if beatmap is None:
            beatmap = _full_beatmap(beatmap_id, row)
            beatmaps[beatmap_id] = beatmap
            beatmapset.beatmaps.append(beatmap)

        if row.get("r_id") is None:
            continue
        rate_id = int(row["r_id"])
        rate = rates.get(rate_id)
        if rate is None:
            rate = build_rate(row)
            rates[rate_id] = rate
            beatmap.rates.append(rate)

        rating = build_rating(row, beatmap.mode)
        if rating is None or rating.id in seen_ratings:
            continue
        seen_ratings.add(rating.id)
        rate.ratings.append(rating)

    return beatmapset


def build_ratings(rows: Iterable[Row], mode: int) -> list[Rating]:
    """レーティング行の並びから Rating のリストを作る(ID重複は除く)。"""
    ratings: list[Rating] = []
    seen: set[int] = set()
    for row in rows:
        rating = build_rating(row, mode)
        if rating is None or rating.id in seen:
            continue
        seen.add(rating.id)
        ratings.append(rating)
    return ratings


def build_single_rate(rows: Sequence[Row], mode: int) -> Optional[Rate]:
    """1つのrateとそのレーティング行から Rate を組み立てる。行が空なら None。"""
    if not rows:
        return None
    rate = build_rate(rows[0])
    rate.ratings = build_ratings(rows, mode)
    return rate


def build_simple_beatmapset(rows: Sequence[Row]) -> Optional[SimpleBeatmapset]:
    """
    簡易表示用のビートマップセットを組み立てる。

    レーティング種別が空の行はスキップする。
    """
    if not rows:
        return None

    first = rows[0]
    simple = SimpleBeatmapset(
        id=require_id(first, "bs_id"),
        osu_id=first.get("bs_osu_id"),
        artist=first.get("bs_artist") or "",
        artist_unicode=first.get("bs_artist_unicode"),
        title=first.get("bs_title") or "",
        title_unicode=first.get("bs_title_unicode"),
        creator=first.get("bs_creator") or "",
        source=first.get("bs_source"),
        tags=parse_tags(first.get("bs_tags")),
        has_video=to_bool(first.get("bs_has_video")),
        has_storyboard=to_bool(first.get("bs_has_storyboard")),
        is_explicit=to_bool(first.get("bs_is_explicit")),
        is_featured=to_bool(first.get("bs_is_featured")),
        cover_url=first.get("bs_cover_url"),
        preview_url=first.get("bs_preview_url"),
        osu_file_url=first.get("bs_osu_file_url"),
    )

    beatmaps: dict[int, SimpleBeatmap] = {}
    for row in rows:
        rating_type = row.get("br_rating_type")
        if not rating_type:
            continue

        beatmap_id = require_id(row, "b_id")
        beatmap = beatmaps.get(beatmap_id)
        if beatmap is None:
            beatmap = SimpleBeatmap(
                beatmap_osu_id=to_int(row.get("b_osu_id")),
                name=row.get("b_difficulty") or "",
                count_circles=to_int(row.get("b_count_circles")),
                count_sliders=to_int(row.get("b_count_sliders")),
                count_spinners=to_int(row.get("b_count_spinners")),
                od=to_float(row.get("b_od")),
                hp=to_float(row.get("b_hp")),
                main_pattern=parse_pattern_set(row.get("b_main_pattern")),
            )
            beatmaps[beatmap_id] = beatmap
            simple.beatmaps.append(beatmap)

        beatmap.ratings.append(
            RatingInfo(rating_type=str(rating_type), rating_value=to_float(row.get("br_rating")))
        )

    logger.debug("simple beatmapset %s: %d beatmaps", simple.osu_id, len(simple.beatmaps))
    return simple
