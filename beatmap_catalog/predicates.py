"""
検索条件からJOINとWHERE句を組み立てる述語ビルダ。

件数取得・候補ID取得・詳細取得の3つのクエリはすべて
push_filtered_from() と apply_filters() を同じ Filters で呼び出す。
どれか1つでも組み立てが食い違うと、件数・ページと結果が一致しなくなる。

テーブル別名:
- bs: beatmapset
- b: beatmap
- r: rates (検索系では centirate = 100 の正準rateのみ)
- br: beatmap_rating
- bmr: beatmap_mania_rating

検索語の条件は SQL関数 fold_case(db.register_functions で登録)を使用する。
"""

from __future__ import annotations

from dataclasses import dataclass

from beatmap_catalog.filters import Filters
from beatmap_catalog.normalize import contains_pattern, fold_case
from beatmap_catalog.query_builder import QueryBuilder

CANONICAL_CENTIRATE = 100

INNER = "INNER JOIN"
LEFT = "LEFT JOIN"

_PATTERN_MEMBERSHIP = (
    " AND EXISTS (SELECT 1 FROM json_each("
    "CASE WHEN json_valid(b.main_pattern) THEN b.main_pattern ELSE '[]' END"
    ") AS mp WHERE mp.value = "
)


@dataclass(frozen=True)
class JoinPlan:
    """
    レーティング系テーブルの結合方法。

    rating/skillset の条件がある場合のみ内部結合とし、
    それ以外は外部結合にしてレーティングを持たないビートマップを除外しない。
    """

    rating_join: str
    mania_join: str


def plan_joins(filters: Filters) -> JoinPlan:
    """Filters から必要な結合方法を決定する。"""
    skill_bound = filters.skillset is not None and filters.skillset.has_bound
    rating_active = filters.rating is not None and filters.rating.is_active

    return JoinPlan(
        rating_join=INNER if (rating_active or skill_bound) else LEFT,
        mania_join=INNER if skill_bound else LEFT,
    )


def push_filtered_from(builder: QueryBuilder, filters: Filters) -> QueryBuilder:
    """
    FROM〜WHERE(正準rate条件まで)を積み上げる。

    続けて apply_filters() で " AND ..." 形式の条件を追加できる状態で返す。
    """
    plan = plan_joins(filters)
    builder.push(
        " FROM beatmapset bs"
        " INNER JOIN beatmap b ON bs.id = b.beatmapset_id"
        " INNER JOIN rates r ON b.id = r.beatmap_id"
    )
    builder.push(f" {plan.rating_join} beatmap_rating br ON r.id = br.rates_id")
    builder.push(f" {plan.mania_join} beatmap_mania_rating bmr ON br.id = bmr.rating_id")
    builder.push(" WHERE r.centirate = ").push_bind(CANONICAL_CENTIRATE)
    return builder


def apply_filters(builder: QueryBuilder, filters: Filters) -> QueryBuilder:
    """
    Filters の各条件を " AND ..." として builder に追加する。

    Args:
        builder: push_filtered_from() 済みのビルダ。
        filters: 検索条件。

    Returns:
        同じビルダ。
    """
    rating = filters.rating
    if rating is not None:
        if rating.rating_type is not None:
            builder.push(" AND br.rating_type = ").push_bind(rating.rating_type)
        if rating.rating_min is not None:
            builder.push(" AND br.rating >= ").push_bind(rating.rating_min)
        if rating.rating_max is not None:
            builder.push(" AND br.rating <= ").push_bind(rating.rating_max)

    term = filters.search_term
    if term is not None:
        # カラム側も同じ畳み込みを通す(LOWER() はASCIIのみ)
        like = contains_pattern(fold_case(term))
        builder.push(" AND (fold_case(bs.artist) LIKE ").push_bind(like).push(" ESCAPE '\\'")
        builder.push(" OR fold_case(bs.title) LIKE ").push_bind(like).push(" ESCAPE '\\'")
        builder.push(" OR fold_case(bs.creator) LIKE ").push_bind(like).push(" ESCAPE '\\')")

    beatmap = filters.beatmap
    if beatmap is not None:
        if beatmap.total_time_min is not None:
            builder.push(" AND r.total_time >= ").push_bind(beatmap.total_time_min)
        if beatmap.total_time_max is not None:
            builder.push(" AND r.total_time <= ").push_bind(beatmap.total_time_max)
        if beatmap.bpm_min is not None:
            builder.push(" AND r.bpm >= ").push_bind(beatmap.bpm_min)
        if beatmap.bpm_max is not None:
            builder.push(" AND r.bpm <= ").push_bind(beatmap.bpm_max)

    technical = filters.beatmap_technical
    if technical is not None:
        if technical.od_min is not None:
            builder.push(" AND b.od >= ").push_bind(technical.od_min)
        if technical.od_max is not None:
            builder.push(" AND b.od <= ").push_bind(technical.od_max)
        if technical.status is not None:
            builder.push(" AND b.status = ").push_bind(technical.status)

    rates = filters.rates
    if rates is not None:
        if rates.drain_time_min is not None:
            builder.push(" AND r.drain_time >= ").push_bind(rates.drain_time_min)
        if rates.drain_time_max is not None:
            builder.push(" AND r.drain_time <= ").push_bind(rates.drain_time_max)

    skill = filters.skillset
    if skill is not None and skill.pattern_type is not None:
        # main_pattern(JSON配列)に pattern_type が含まれるか
        builder.push(_PATTERN_MEMBERSHIP).push_bind(skill.pattern_type).push(")")

        column = skill.column
        if column is not None:
            if skill.pattern_min is not None:
                builder.push(f" AND bmr.{column} >= ").push_bind(skill.pattern_min)
            if skill.pattern_max is not None:
                builder.push(f" AND bmr.{column} <= ").push_bind(skill.pattern_max)

    return builder
