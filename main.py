import argparse
import json
import logging
import os
import sys
import traceback

from beatmap_catalog.catalog import BeatmapCatalog
from beatmap_catalog.config import Settings, load_settings
from beatmap_catalog.db import SqliteExecutor, init_schema


def resolve_settings() -> Settings:
    """
    環境変数から設定を解決する。

    環境変数:
    - CATALOG_SETTINGS: settings.yaml のパス(デフォルト: "settings.yaml")
    - CATALOG_DB_PATH: SQLiteファイルパス(指定時は settings.yaml の値より優先)

    Returns:
        Settings: 解決済みの設定。settings.yaml が無い場合は既定値。
    """
    settings_path = os.environ.get("CATALOG_SETTINGS", "settings.yaml")
    db_path = os.environ.get("CATALOG_DB_PATH")

    if os.path.exists(settings_path):
        settings = load_settings(settings_path)
    else:
        settings = Settings(database_path="beatmap_catalog.sqlite")

    if db_path:
        settings = Settings(database_path=db_path, search=settings.search)
    return settings


def _load_filters(raw: str) -> dict:
    data = json.loads(raw) if raw else {}
    if not isinstance(data, dict):
        raise ValueError("filters はJSONオブジェクトで指定してください")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ビートマップカタログ検索")
    parser.add_argument("-v", "--verbose", action="store_true", help="debugログを出力する")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("search", "count", "random"):
        p = sub.add_parser(name)
        p.add_argument("filters", nargs="?", default="{}", help="検索条件(JSON)")

    p = sub.add_parser("show")
    p.add_argument("osu_id", type=int)

    p = sub.add_parser("simple")
    p.add_argument("osu_id", type=int)
    p.add_argument("--rating-type", default=None)

    p = sub.add_parser("rate")
    p.add_argument("beatmap_osu_id", type=int)
    p.add_argument("centirate", type=int)

    sub.add_parser("init-db")
    return parser


def run(args: argparse.Namespace, settings: Settings) -> object:
    """
    サブコマンドを実行し、JSONへ変換可能な結果を返す。

    見つからない場合は None を返す(エラーではない)。
    """
    with SqliteExecutor.open(settings.database_path) as executor:
        if args.command == "init-db":
            init_schema(executor.connection)
            return {"database_path": settings.database_path}

        catalog = BeatmapCatalog(executor, settings.search)

        if args.command == "search":
            return [s.to_dict() for s in catalog.search(_load_filters(args.filters))]
        if args.command == "count":
            return {"total": catalog.count(_load_filters(args.filters))}
        if args.command == "random":
            return [s.to_dict() for s in catalog.random_sample(_load_filters(args.filters))]
        if args.command == "show":
            beatmapset = catalog.load_full(args.osu_id)
            return None if beatmapset is None else beatmapset.to_dict()
        if args.command == "simple":
            simple = catalog.load_simple(args.osu_id, args.rating_type)
            return None if simple is None else simple.to_dict()
        if args.command == "rate":
            rate = catalog.rate_for(args.beatmap_osu_id, args.centirate)
            return None if rate is None else rate.to_dict()

    raise ValueError(f"未知のコマンドです: {args.command}")


def main(argv=None):
    """
    ビートマップカタログに対する検索・詳細取得をコマンドラインから実行する。

    結果はJSONで標準出力へ書き出す。
    処理中に例外が発生した場合はトレースバックを標準エラーへ出力し、再送出する。
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = resolve_settings()
        result = run(args, settings)
        print(json.dumps(result, ensure_ascii=False, indent=2))

    except Exception:
        print(traceback.format_exc(), file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
