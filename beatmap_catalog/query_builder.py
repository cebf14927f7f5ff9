"""
パラメータ化SQLを組み立てるためのビルダ。

値は必ずプレースホルダ(?)としてバインドし、SQL文字列へ埋め込まない。
"""

from __future__ import annotations

from typing import Any, Iterable


class QueryBuilder:
    """
    SQL断片とバインド値を順に積み上げる可変ハンドル。

    Example:
        >>> qb = QueryBuilder("SELECT id FROM beatmapset WHERE 1=1")
        >>> qb.push(" AND osu_id = ").push_bind(42).build()
        ('SELECT id FROM beatmapset WHERE 1=1 AND osu_id = ?', (42,))
    """

    def __init__(self, sql: str = "") -> None:
        self._parts: list[str] = [sql] if sql else []
        self._params: list[Any] = []

    def push(self, sql: str) -> "QueryBuilder":
        self._parts.append(sql)
        return self

    def push_bind(self, value: Any) -> "QueryBuilder":
        self._parts.append("?")
        self._params.append(value)
        return self

    def push_bind_list(self, values: Iterable[Any]) -> "QueryBuilder":
        """
        IN 句用に値の並びを "(?, ?, ...)" としてバインドする。

        Raises:
            ValueError: values が空の場合(空の IN 句はSQLとして不正)。
        """
        items = list(values)
        if not items:
            raise ValueError("IN 句にバインドする値が空です")
        self._parts.append("(" + ", ".join("?" for _ in items) + ")")
        self._params.extend(items)
        return self

    @property
    def params(self) -> tuple[Any, ...]:
        return tuple(self._params)

    def sql(self) -> str:
        return "".join(self._parts)

    def build(self) -> tuple[str, tuple[Any, ...]]:
        return self.sql(), self.params
