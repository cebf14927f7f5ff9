"""
サマリ用にビートマップを代表的な数件へ絞り込む処理。

各ビートマップセットについて、スコアの低い順(易しい順)に並べ、
上限を超える場合は易しい (limit - 1) 件と最難1件だけを残す。
total_beatmaps には絞り込み前の件数を記録する。
"""

from __future__ import annotations

import math
from typing import Iterable, Optional

from beatmap_catalog.filters import Filters
from beatmap_catalog.models import BeatmapSummary, BeatmapsetSummary

FALLBACK_RATING_TYPE = "osu"
DEFAULT_BEATMAP_LIMIT = 6


def preferred_rating_type(filters: Filters, default: str = FALLBACK_RATING_TYPE) -> str:
    """検索条件の rating.rating_type、未指定なら default を返す。"""
    if filters.rating is not None and filters.rating.rating_type is not None:
        return filters.rating.rating_type
    return default


def beatmap_score(beatmap: BeatmapSummary, preferred_type: str) -> float:
    """
    ビートマップの比較用スコアを返す。

    優先種別のレーティング → "osu" のレーティング → 負の無限大 の順に採用する。
    """
    for wanted in (preferred_type, FALLBACK_RATING_TYPE):
        for rating in beatmap.ratings:
            if rating.rating_type == wanted:
                return rating.rating
    return -math.inf


def select_representatives(
    beatmaps: list[BeatmapSummary],
    preferred_type: str,
    limit: int = DEFAULT_BEATMAP_LIMIT,
) -> list[BeatmapSummary]:
    """
    スコア昇順に並べ、limit を超える場合は易しい (limit - 1) 件 + 最難1件を返す。

    同点はビートマップIDの昇順で並べる。最難はこの並びの末尾
    (最大スコアのうちIDが最大のもの)であり、易しい側と重複しない。

    Args:
        beatmaps: 対象ビートマップ。
        preferred_type: 優先するレーティング種別。
        limit: 残す最大件数。

    Returns:
        絞り込み後のビートマップ(スコア昇順、最難は末尾)。

    Raises:
        ValueError: limit が1未満の場合。
    """
    if limit < 1:
        raise ValueError(f"limit は1以上である必要があります: {limit}")
    ordered = sorted(beatmaps, key=lambda b: (beatmap_score(b, preferred_type), b.id))
    if len(ordered) <= limit:
        return ordered
    return ordered[: limit - 1] + [ordered[-1]]


def sort_and_limit_beatmaps(
    beatmapsets: Iterable[BeatmapsetSummary],
    preferred_type: str,
    limit: Optional[int] = None,
) -> None:
    """各ビートマップセットの total_beatmaps を記録したうえでビートマップを絞り込む。"""
    limit = DEFAULT_BEATMAP_LIMIT if limit is None else limit
    for beatmapset in beatmapsets:
        beatmapset.total_beatmaps = len(beatmapset.beatmaps)
        beatmapset.beatmaps = select_representatives(beatmapset.beatmaps, preferred_type, limit)
