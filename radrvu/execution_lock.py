"""
スキャン実行ロック
抽出リクエストは同時に1件まで（画像の重複アップロードによる二重追加を防ぐ）
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Optional


class ScanInProgressError(RuntimeError):
    """別のスキャンが処理中"""


class ScanLock:
    """プロセス内のスキャン実行ロック"""

    def __init__(self):
        self._holder: Optional[Dict[str, Any]] = None

    @property
    def locked(self) -> bool:
        return self._holder is not None

    def acquire_lock(self, scan_id: str, metadata: Optional[Dict[str, Any]] = None) -> bool:
        """ロックを取得する

        Args:
            scan_id: スキャンID
            metadata: メタデータ（ファイル名など）

        Returns:
            bool: ロック取得成功時True
        """
        if self._holder is not None:
            return False
        self._holder = {
            "scan_id": scan_id,
            "timestamp": datetime.now().isoformat(),
            "metadata": metadata or {},
        }
        return True

    def release_lock(self, scan_id: str) -> bool:
        if self._holder is None or self._holder["scan_id"] != scan_id:
            return False
        self._holder = None
        return True

    def get_lock_info(self) -> Optional[Dict[str, Any]]:
        return dict(self._holder) if self._holder else None

    @contextmanager
    def hold(self, scan_id: str, metadata: Optional[Dict[str, Any]] = None):
        """処理中は保持し、成功・失敗どちらでも解放する"""
        if not self.acquire_lock(scan_id, metadata):
            current = self._holder["scan_id"] if self._holder else "?"
            raise ScanInProgressError(f"scan already in progress: {current}")
        try:
            yield
        finally:
            self.release_lock(scan_id)
