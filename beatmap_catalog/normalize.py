"""
値の正規化・型変換ユーティリティ。

検索語の表記揺れ吸収、DBから取得した数値(任意精度decimal)のfloat変換、
main_pattern(JSON配列)のパターン集合への変換を提供する。

数値変換に失敗した場合は 0 を返す。これは意図した損失許容のフォールバックである。
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

_LIKE_ESCAPE = "\\"


def normalize_search_term(s: str | None) -> str:
    """
    検索語を正規化して返す。

    正規化内容:
    - Unicode正規化 (NFKC)
    - 改行/タブをスペースへ置換
    - 全角スペース→半角スペース
    - trim
    - 連続空白を単一化
    - 大文字小文字の畳み込み(casefold、非ASCIIを含む)

    Args:
        s: 入力文字列。

    Returns:
        正規化済み文字列。入力が None の場合は空文字を返す。
    """
    if s is None:
        return ""

    s = unicodedata.normalize("NFKC", s)

    # 改行・タブ除去
    s = s.replace("\n", " ").replace("\r", " ").replace("\t", " ")

    # 全角スペース→半角スペース
    s = s.replace("　", " ")

    s = s.strip()
    s = re.sub(r"\s+", " ", s)

    return fold_case(s)


def fold_case(s: Any) -> str | None:
    """
    大文字小文字の違いを吸収した比較用の文字列を返す(NFKC + casefold)。

    SQLite の LOWER() はASCIIしか畳み込まないため、同じ関数を
    SQL関数 fold_case として接続に登録し、カラム側にも適用する。
    """
    if s is None:
        return None
    return unicodedata.normalize("NFKC", str(s)).casefold()


def escape_like(term: str) -> str:
    """LIKE パターン中のワイルドカード(% と _)をエスケープする。"""
    return (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def contains_pattern(term: str) -> str:
    """部分一致用の LIKE パターン(%term%)を返す。"""
    return f"%{escape_like(term)}%"


def to_float(value: Any, default: float = 0.0) -> float:
    """
    DBから取得した数値をfloatへ変換する。

    Decimal / int / float / 数値文字列を受け付ける。
    None や変換不能な値は default を返す。

    Args:
        value: 変換対象。
        default: 変換できない場合の値。

    Returns:
        float値。
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)

    try:
        result = float(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        logger.debug("数値変換に失敗したため既定値を使用します: %r", value)
        return default

    # NaN/Infinity はスコア比較を壊すため既定値に落とす
    if result != result or result in (float("inf"), float("-inf")):
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    """DBから取得した値をintへ変換する。変換できない場合は default を返す。"""
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(to_float(value, float(default)))
        except (OverflowError, ValueError):
            return default


def to_bool(value: Any) -> bool:
    """SQLiteの0/1などを bool へ変換する。None は False とする。"""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "t", "yes")
    return bool(value)


def parse_pattern_set(value: Any) -> frozenset[str]:
    """
    main_pattern カラムの値をパターン名の集合へ変換する。

    物理的にはJSON配列(文字列)だが、ドライバによっては既にlistで返る場合もある。
    JSONとして解釈できない場合や配列でない場合は空集合を返す。

    Args:
        value: main_pattern カラムの値。

    Returns:
        パターン名の frozenset。
    """
    if value is None:
        return frozenset()

    data = value
    if isinstance(value, (bytes, bytearray)):
        data = value.decode("utf-8", errors="replace")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("main_pattern がJSONとして解釈できません: %r", value)
            return frozenset()

    if not isinstance(data, (list, tuple)):
        return frozenset()

    return frozenset(str(item) for item in data if item is not None)


def parse_tags(value: Any) -> str | None:
    """
    beatmapset.tags を空白区切りの文字列へ変換する。

    JSON配列・list・文字列のいずれも受け付け、空の場合は None を返す。
    """
    if value is None:
        return None

    items: Any = value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        if not stripped.startswith("["):
            return stripped
        try:
            items = json.loads(stripped)
        except json.JSONDecodeError:
            return stripped

    if not isinstance(items, (list, tuple)):
        return str(items)

    words = [str(item) for item in items if item]
    return " ".join(words) if words else None
