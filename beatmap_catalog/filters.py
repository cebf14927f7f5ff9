"""
検索条件(フィルタ)モデル定義モジュール。

各グループ(rating / skillset / beatmap / beatmap_technical / rates)および
各フィールドはすべて任意。境界値はすべて閉区間(>= / <=)で、
未指定の境界は「制約なし」を意味する(0 ではない)。

ルーティング層から渡される辞書形式の検索条件は Filters.from_dict で解釈する。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from beatmap_catalog.errors import ValidationError
from beatmap_catalog.normalize import normalize_search_term

DEFAULT_PAGE = 0
DEFAULT_PER_PAGE = 9

# パターン種別 → beatmap_mania_rating のカラム
PATTERN_COLUMNS = {
    "jumpstream": "jumpstream",
    "stream": "stream",
    "handstream": "handstream",
    "stamina": "stamina",
    "jackspeed": "jackspeed",
    "chordjack": "chordjack",
    "technical": "technical",
}


@dataclass(frozen=True)
class RatingFilter:
    rating_type: Optional[str] = None
    rating_min: Optional[float] = None
    rating_max: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return any(v is not None for v in (self.rating_type, self.rating_min, self.rating_max))


@dataclass(frozen=True)
class SkillsetFilter:
    """
    スキルセット(パターン)条件。

    pattern_type が未知の値の場合、min/max は適用されず、
    main_pattern への所属判定のみが行われる。
    """

    pattern_type: Optional[str] = None
    pattern_min: Optional[float] = None
    pattern_max: Optional[float] = None

    @property
    def column(self) -> Optional[str]:
        if self.pattern_type is None:
            return None
        return PATTERN_COLUMNS.get(self.pattern_type)

    @property
    def has_bound(self) -> bool:
        """既知のパターン種別に対して min/max のいずれかが指定されているか。"""
        if self.column is None:
            return False
        return self.pattern_min is not None or self.pattern_max is not None


@dataclass(frozen=True)
class BeatmapFilter:
    search_term: Optional[str] = None
    total_time_min: Optional[int] = None
    total_time_max: Optional[int] = None
    bpm_min: Optional[float] = None
    bpm_max: Optional[float] = None


@dataclass(frozen=True)
class BeatmapTechnicalFilter:
    od_min: Optional[float] = None
    od_max: Optional[float] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class RatesFilter:
    drain_time_min: Optional[int] = None
    drain_time_max: Optional[int] = None


@dataclass(frozen=True)
class Filters:
    """
    検索条件全体。

    Attributes:
        rating: レーティング種別・範囲。
        skillset: スキルセット(パターン)種別・範囲。
        beatmap: 検索語・総時間・BPM範囲。
        beatmap_technical: OD範囲・ステータス。
        rates: ドレイン時間範囲。
        page: 0始まりのページ番号。None は既定値。
        per_page: 1ページあたり件数。None は既定値。
    """

    rating: Optional[RatingFilter] = None
    skillset: Optional[SkillsetFilter] = None
    beatmap: Optional[BeatmapFilter] = None
    beatmap_technical: Optional[BeatmapTechnicalFilter] = None
    rates: Optional[RatesFilter] = None
    page: Optional[int] = None
    per_page: Optional[int] = None

    def page_or_default(self) -> int:
        return self.page if self.page is not None else DEFAULT_PAGE

    def per_page_or(self, default: int = DEFAULT_PER_PAGE) -> int:
        return self.per_page if self.per_page is not None else default

    @property
    def search_term(self) -> Optional[str]:
        if self.beatmap is None:
            return None
        return self.beatmap.search_term

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Filters":
        """
        辞書形式の検索条件を Filters に変換する。

        skillset は "pattern" キーでも受け付ける。各グループ内の min/max は
        "rating_min" のような完全名と "min" のような短縮名の両方を受け付ける。

        Args:
            data: 検索条件。None は条件なし。

        Returns:
            Filtersオブジェクト。

        Raises:
            ValidationError: 型が不正な場合、またはページ指定が範囲外の場合。
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValidationError("検索条件はオブジェクトである必要があります")

        rating_data = _group(data, "rating")
        skill_data = _group(data, "skillset")
        if skill_data is None:
            skill_data = _group(data, "pattern")
        beatmap_data = _group(data, "beatmap")
        technical_data = _group(data, "beatmap_technical")
        rates_data = _group(data, "rates")

        rating = None
        if rating_data is not None:
            rating = RatingFilter(
                rating_type=_opt_str(rating_data, "rating_type", "type"),
                rating_min=_opt_float(rating_data, "rating_min", "min"),
                rating_max=_opt_float(rating_data, "rating_max", "max"),
            )

        skillset = None
        if skill_data is not None:
            skillset = SkillsetFilter(
                pattern_type=_opt_str(skill_data, "pattern_type", "type"),
                pattern_min=_opt_float(skill_data, "pattern_min", "min"),
                pattern_max=_opt_float(skill_data, "pattern_max", "max"),
            )

        beatmap = None
        if beatmap_data is not None:
            term = normalize_search_term(_opt_str(beatmap_data, "search_term"))
            beatmap = BeatmapFilter(
                search_term=term or None,
                total_time_min=_opt_int(beatmap_data, "total_time_min"),
                total_time_max=_opt_int(beatmap_data, "total_time_max"),
                bpm_min=_opt_float(beatmap_data, "bpm_min"),
                bpm_max=_opt_float(beatmap_data, "bpm_max"),
            )

        technical = None
        if technical_data is not None:
            technical = BeatmapTechnicalFilter(
                od_min=_opt_float(technical_data, "od_min"),
                od_max=_opt_float(technical_data, "od_max"),
                status=_opt_str(technical_data, "status"),
            )

        rates = None
        if rates_data is not None:
            rates = RatesFilter(
                drain_time_min=_opt_int(rates_data, "drain_time_min"),
                drain_time_max=_opt_int(rates_data, "drain_time_max"),
            )

        page = _opt_int(data, "page")
        per_page = _opt_int(data, "per_page")
        if page is not None and page < 0:
            raise ValidationError("page は0以上である必要があります")
        if per_page is not None and per_page < 1:
            raise ValidationError("per_page は1以上である必要があります")

        return cls(
            rating=rating,
            skillset=skillset,
            beatmap=beatmap,
            beatmap_technical=technical,
            rates=rates,
            page=page,
            per_page=per_page,
        )


def _group(data: Mapping[str, Any], key: str) -> Optional[Mapping[str, Any]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValidationError(f"{key} はオブジェクトである必要があります")
    return value


def _lookup(data: Mapping[str, Any], keys: tuple[str, ...]) -> tuple[Optional[str], Any]:
    for key in keys:
        if data.get(key) is not None:
            return key, data[key]
    return None, None


def _opt_str(data: Mapping[str, Any], *keys: str) -> Optional[str]:
    key, value = _lookup(data, keys)
    if key is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} は文字列である必要があります: {value!r}")
    value = value.strip()
    return value or None


def _opt_float(data: Mapping[str, Any], *keys: str) -> Optional[float]:
    key, value = _lookup(data, keys)
    if key is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} は数値である必要があります: {value!r}")
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} は数値である必要があります: {value!r}") from exc
    if result != result:
        raise ValidationError(f"{key} にNaNは指定できません")
    return result


def _opt_int(data: Mapping[str, Any], *keys: str) -> Optional[int]:
    key, value = _lookup(data, keys)
    if key is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} は整数である必要があります: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{key} は整数である必要があります: {value!r}")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} は整数である必要があります: {value!r}") from exc
