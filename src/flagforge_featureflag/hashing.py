"""ユーザー x フラグの決定的バケット計算"""

from __future__ import annotations

import hashlib

BUCKET_COUNT = 100


def hash_bucket(user_id: str, flag_key: str) -> int:
    """(user_id, flag_key) を [0, 100) の安定したバケットに写像する。

    シード ``"{user_id}:{flag_key}"`` の MD5 ダイジェスト先頭 32 ビットを
    符号なし整数として読み、100 で割った余りを返す。プロセスローカルな
    シードは使わないため、サーバーと SDK の間で同じ値になる。
    """
    seed = f"{user_id}:{flag_key}".encode("utf-8")
    digest = hashlib.md5(seed, usedforsecurity=False).hexdigest()
    return int(digest[:8], 16) % BUCKET_COUNT


def is_valid_percentage(value: int) -> bool:
    """0-100 の範囲内か判定する。"""
    return 0 <= value <= 100
