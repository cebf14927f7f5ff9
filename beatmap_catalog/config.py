"""
設定ファイル(settings.yaml)の読み込み処理を提供するモジュール。

settings.yaml から検索エンジンに必要な各種設定を読み込み、
アプリ内で扱いやすい dataclass に変換する。
"""

from dataclasses import dataclass, field
import yaml


@dataclass(frozen=True)
class SearchConfig:
    """
    検索・サマリ生成の設定。

    Attributes:
        default_per_page: per_page 未指定時の1ページあたり件数。
        random_sample_size: ランダム取得時の最大件数。
        summary_beatmap_limit: サマリに残すビートマップ数の上限(易しい順 limit-1 件 + 最難1件)。
        default_rating_type: rating.rating_type 未指定時に優先するレーティング種別。
    """

    default_per_page: int = 9
    random_sample_size: int = 9
    summary_beatmap_limit: int = 6
    default_rating_type: str = "osu"

    def __post_init__(self) -> None:
        if self.default_per_page < 1:
            raise ValueError("search.default_per_page は1以上である必要があります")
        if self.random_sample_size < 1:
            raise ValueError("search.random_sample_size は1以上である必要があります")
        if self.summary_beatmap_limit < 2:
            raise ValueError("search.summary_beatmap_limit は2以上である必要があります")


@dataclass(frozen=True)
class Settings:
    """
    アプリケーション全体設定。

    settings.yaml の内容を保持する。

    Attributes:
        database_path: SQLiteファイルパス。
        search: 検索設定。
    """

    database_path: str
    search: SearchConfig = field(default_factory=SearchConfig)


def load_settings(path: str) -> Settings:
    """
    settings.yaml を読み込み Settings に変換する。

    Args:
        path: settings.yaml のファイルパス。

    Returns:
        Settingsオブジェクト。

    Raises:
        FileNotFoundError: 設定ファイルが存在しない場合。
        yaml.YAMLError: YAMLのパースに失敗した場合。
        ValueError: 数値設定のint変換に失敗した場合、または値が範囲外の場合。
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    search_data = data.get("search") or {}
    defaults = SearchConfig()

    search = SearchConfig(
        default_per_page=int(search_data.get("default_per_page", defaults.default_per_page)),
        random_sample_size=int(search_data.get("random_sample_size", defaults.random_sample_size)),
        summary_beatmap_limit=int(
            search_data.get("summary_beatmap_limit", defaults.summary_beatmap_limit)
        ),
        default_rating_type=str(
            search_data.get("default_rating_type", defaults.default_rating_type)
        ).strip(),
    )

    return Settings(
        database_path=str(data.get("database_path", "beatmap_catalog.sqlite")),
        search=search,
    )
