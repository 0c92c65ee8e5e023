"""
風データ用キャッシュ

WindyServiceが使うキャッシュストアのインターフェースと、
TTL付きのインメモリ実装を提供する。
"""

import logging
import time
from typing import Callable, Dict, Optional, Protocol, Tuple


class CacheStore(Protocol):
    """Async key/value store with per-entry TTL. Values are JSON text."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...


class InMemoryWeatherCache:
    """インメモリのTTLキャッシュ"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            clock: 秒単位の現在時刻を返す関数（テスト用に差し替え可能）
        """
        self.logger = logging.getLogger(__name__)
        self._clock = clock
        self._cache: Dict[str, Tuple[str, float]] = {}

    def _is_cache_valid(self, key: str) -> bool:
        """キャッシュが有効かどうかをチェック"""
        if key not in self._cache:
            return False
        _, expires_at = self._cache[key]
        return self._clock() < expires_at

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._cache.items() if now >= expires_at]
        for key in expired:
            del self._cache[key]
        if expired:
            self.logger.debug(f"期限切れのキャッシュを{len(expired)}件削除しました")

    async def get(self, key: str) -> Optional[str]:
        """キャッシュからデータを取得"""
        if self._is_cache_valid(key):
            self.logger.debug(f"キャッシュヒット: {key}")
            return self._cache[key][0]
        # 期限切れのエントリを削除
        self._cache.pop(key, None)
        return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """データをキャッシュに保存（期限切れのエントリも掃除する）"""
        self._evict_expired()
        self._cache[key] = (value, self._clock() + ttl_seconds)
        self.logger.debug(f"データをキャッシュに保存: {key} (TTL {ttl_seconds}秒)")

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
