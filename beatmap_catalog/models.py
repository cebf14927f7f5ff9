"""
データモデル定義モジュール。

クエリ結果から組み立てる読み取り専用の射影(リクエスト単位で生成・破棄される)を定義する。

- 検索/サマリ用: BeatmapsetSummary → BeatmapSummary → Rating
- 詳細用: Beatmapset → Beatmap → Rate → Rating → ModeRating
- 簡易表示用: SimpleBeatmapset → SimpleBeatmap → RatingInfo

ModeRating はプレイモードごとのタグ付きユニオンであり、
フィールドを持つのは mania(ManiaRating) のみ。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional, Union

MODE_STD = 0
MODE_TAIKO = 1
MODE_CATCH = 2
MODE_MANIA = 3


@dataclass(frozen=True)
class ManiaRating:
    """maniaモードのスキルセット別スコア。"""

    id: Optional[int] = None
    stream: float = 0.0
    jumpstream: float = 0.0
    handstream: float = 0.0
    stamina: float = 0.0
    jackspeed: float = 0.0
    chordjack: float = 0.0
    technical: float = 0.0

    kind = "mania"


@dataclass(frozen=True)
class StdRating:
    kind = "std"


@dataclass(frozen=True)
class TaikoRating:
    kind = "taiko"


@dataclass(frozen=True)
class CatchRating:
    kind = "catch"


ModeRating = Union[ManiaRating, StdRating, TaikoRating, CatchRating]

_EMPTY_MODE_RATINGS = {
    MODE_STD: StdRating(),
    MODE_TAIKO: TaikoRating(),
    MODE_CATCH: CatchRating(),
}


def default_mode_rating(mode: int) -> ModeRating:
    """
    モード固有データが存在しない場合の ModeRating を返す。

    maniaはゼロ値の ManiaRating、その他のモードはフィールドなしのバリアントとなる。
    未知のモードは std として扱う。
    """
    if mode == MODE_MANIA:
        return ManiaRating()
    return _EMPTY_MODE_RATINGS.get(mode, StdRating())


def mode_rating_to_dict(mode_rating: ModeRating) -> dict:
    data = {"kind": mode_rating.kind}
    if isinstance(mode_rating, ManiaRating):
        data.update(asdict(mode_rating))
    return data


@dataclass(frozen=True)
class Rating:
    """
    1つのrateに対する難易度スコア。

    rating_type は (rate, rating_type) 単位で一意。
    """

    id: Optional[int]
    rates_id: Optional[int]
    rating: float
    rating_type: str
    mode_rating: ModeRating

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rates_id": self.rates_id,
            "rating": self.rating,
            "rating_type": self.rating_type,
            "mode_rating": mode_rating_to_dict(self.mode_rating),
        }


@dataclass
class Rate:
    """
    テンポ倍率違いの譜面(rate)。

    centirate は倍率の100倍の整数で、100が等速(正準rate)。
    """

    id: Optional[int]
    osu_hash: Optional[str]
    centirate: int
    drain_time: int
    total_time: int
    bpm: float
    ratings: list[Rating] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "osu_hash": self.osu_hash,
            "centirate": self.centirate,
            "drain_time": self.drain_time,
            "total_time": self.total_time,
            "bpm": self.bpm,
            "ratings": [r.to_dict() for r in self.ratings],
        }


@dataclass
class Beatmap:
    """詳細表示用のビートマップ(1難易度)。"""

    id: Optional[int]
    osu_id: Optional[int]
    beatmapset_id: Optional[int]
    difficulty: str
    count_circles: int
    count_sliders: int
    count_spinners: int
    max_combo: int
    cs: float
    ar: float
    od: float
    hp: float
    mode: int
    status: str
    main_pattern: frozenset[str]
    rates: list[Rate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "osu_id": self.osu_id,
            "beatmapset_id": self.beatmapset_id,
            "difficulty": self.difficulty,
            "count_circles": self.count_circles,
            "count_sliders": self.count_sliders,
            "count_spinners": self.count_spinners,
            "max_combo": self.max_combo,
            "cs": self.cs,
            "ar": self.ar,
            "od": self.od,
            "hp": self.hp,
            "mode": self.mode,
            "status": self.status,
            "main_pattern": sorted(self.main_pattern),
            "rates": [r.to_dict() for r in self.rates],
        }


@dataclass
class Beatmapset:
    """詳細表示用のビートマップセット。ビートマップは切り詰めない。"""

    id: Optional[int]
    osu_id: Optional[int]
    artist: str
    artist_unicode: Optional[str]
    title: str
    title_unicode: Optional[str]
    creator: str
    source: Optional[str]
    tags: Optional[str]
    has_video: bool
    has_storyboard: bool
    is_explicit: bool
    is_featured: bool
    cover_url: Optional[str]
    preview_url: Optional[str]
    osu_file_url: Optional[str]
    osu_status_changed_at: Optional[str]
    beatmaps: list[Beatmap] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            key: getattr(self, key)
            for key in (
                "id", "osu_id", "artist", "artist_unicode", "title", "title_unicode",
                "creator", "source", "tags", "has_video", "has_storyboard",
                "is_explicit", "is_featured", "cover_url", "preview_url",
                "osu_file_url", "osu_status_changed_at",
            )
        }
        data["beatmaps"] = [b.to_dict() for b in self.beatmaps]
        return data


@dataclass
class BeatmapSummary:
    """
    検索結果用のビートマップ。

    rate階層は持たず、正準rate(centirate=100)のレーティングを直接保持する。
    """

    id: int
    osu_id: Optional[int]
    difficulty: str
    mode: int
    status: str
    main_pattern: frozenset[str]
    ratings: list[Rating] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "osu_id": self.osu_id,
            "difficulty": self.difficulty,
            "mode": self.mode,
            "status": self.status,
            "main_pattern": sorted(self.main_pattern),
            "ratings": [r.to_dict() for r in self.ratings],
        }


@dataclass
class BeatmapsetSummary:
    """
    検索結果用のビートマップセット。

    total_beatmaps は切り詰め前に一致したビートマップ数を保持する。
    """

    id: int
    osu_id: Optional[int]
    artist: str
    title: str
    creator: str
    cover_url: Optional[str]
    total_beatmaps: int = 0
    beatmaps: list[BeatmapSummary] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "osu_id": self.osu_id,
            "artist": self.artist,
            "title": self.title,
            "creator": self.creator,
            "cover_url": self.cover_url,
            "total_beatmaps": self.total_beatmaps,
            "beatmaps": [b.to_dict() for b in self.beatmaps],
        }


@dataclass(frozen=True)
class RatingInfo:
    rating_type: str
    rating_value: float


@dataclass
class SimpleBeatmap:
    """簡易表示用のビートマップ。"""

    beatmap_osu_id: int
    name: str
    count_circles: int
    count_sliders: int
    count_spinners: int
    od: float
    hp: float
    main_pattern: frozenset[str]
    ratings: list[RatingInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["main_pattern"] = sorted(self.main_pattern)
        return data


@dataclass
class SimpleBeatmapset:
    """簡易表示用のビートマップセット。"""

    id: int
    osu_id: Optional[int]
    artist: str
    artist_unicode: Optional[str]
    title: str
    title_unicode: Optional[str]
    creator: str
    source: Optional[str]
    tags: Optional[str]
    has_video: bool
    has_storyboard: bool
    is_explicit: bool
    is_featured: bool
    cover_url: Optional[str]
    preview_url: Optional[str]
    osu_file_url: Optional[str]
    beatmaps: list[SimpleBeatmap] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            key: getattr(self, key)
            for key in (
                "id", "osu_id", "artist", "artist_unicode", "title", "title_unicode",
                "creator", "source", "tags", "has_video", "has_storyboard",
                "is_explicit", "is_featured", "cover_url", "preview_url", "osu_file_url",
            )
        }
        data["beatmaps"] = [b.to_dict() for b in self.beatmaps]
        return data
