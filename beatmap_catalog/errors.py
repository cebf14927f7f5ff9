"""
アプリケーション固有の例外定義モジュール。

検索条件の解釈、クエリ結果の組み立てなどで発生する例外を分類して扱うために、
基底例外および派生例外を定義する。

ストア(SQLite)との通信エラーはここでは包まず、sqlite3.Error のまま呼び出し元へ伝播させる。
"""


class CatalogError(Exception):
    """ビートマップカタログ検索エンジン全体の基底例外。"""


class ValidationError(CatalogError):
    """検索条件などの入力データが不正な場合の例外。"""


class MalformedResultError(CatalogError):
    """
    取得した行に必要な識別子カラムが存在しない場合の例外。

    述語と射影(SELECT句)の不整合を示すロジックエラーであり、再試行しても解消しない。
    """
