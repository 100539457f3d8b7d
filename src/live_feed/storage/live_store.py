from __future__ import annotations

import json
import logging
import os
import threading
import time
from typing import Any, Callable, Iterable

from live_feed.models.record import ArchiveEntry, ContentRecord

logger = logging.getLogger(__name__)

RecordPredicate = Callable[[ContentRecord], bool]

_ORDER_KEYS: dict[str, Callable[[ContentRecord], Any]] = {
    "added_at": lambda r: (r.added_at or 0.0, r.id),
    "created_at": lambda r: (r.created_at, r.id),
    "published_at": lambda r: (r.published_at or 0.0, r.id),
    "last_enriched_at": lambda r: (r.last_enriched_at or 0.0, r.id),
}


def _safe_read_json(path: str, default: Any) -> Any:
    """JSON 파일을 안전하게 로드, 실패 시 기본값 반환."""
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception:
        return default


def _atomic_write_json(path: str, payload: dict) -> None:
    """임시 파일로 저장 후 원자적 교체."""
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


class InMemoryLiveStore:
    """라이브 피드 + 아카이브 저장소.

    Publisher는 `insert_live`만 호출하고, 삭제/갱신/아카이브는 FeedMaintainer만
    수행한다. 여러 단계를 한 번에 묶어야 하는 쪽은 `lock`을 직접 잡는다.
    변경 도중 `_persist()`가 실패하면 메모리 상태를 변경 전으로 되돌린 뒤 예외를
    그대로 올린다.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._live: dict[str, ContentRecord] = {}
        self._archive: list[ArchiveEntry] = []

    def _persist(self) -> None:
        return None

    def _mutate(self, change: Callable[[], Any]) -> Any:
        with self.lock:
            snapshot = (dict(self._live), list(self._archive))
            try:
                result = change()
                self._persist()
            except Exception:
                self._live, self._archive = snapshot
                raise
            return result

    def insert_live(self, record: ContentRecord, now: float | None = None) -> bool:
        """이미 있는 id면 아무것도 하지 않고 False."""
        def _insert() -> bool:
            if record.id in self._live:
                return False
            if record.added_at is None:
                record.stamp("added_at", now if now is not None else time.time())
            self._live[record.id] = record
            return True

        return self._mutate(_insert)

    def get_live(self, record_id: str) -> ContentRecord | None:
        with self.lock:
            return self._live.get(record_id)

    def live_ids(self) -> set[str]:
        with self.lock:
            return set(self._live.keys())

    def query_live(
        self,
        predicate: RecordPredicate | None = None,
        order: str | None = "added_at",
        limit: int | None = None,
    ) -> list[ContentRecord]:
        with self.lock:
            records = [r for r in self._live.values() if predicate is None or predicate(r)]
        if order:
            descending = order.startswith("-")
            key = _ORDER_KEYS[order.lstrip("-")]
            records.sort(key=key, reverse=descending)
        if limit is not None:
            records = records[: max(0, limit)]
        return records

    def delete_live(self, record_ids: Iterable[str]) -> list[ContentRecord]:
        ids = list(record_ids)

        def _delete() -> list[ContentRecord]:
            removed: list[ContentRecord] = []
            for record_id in ids:
                record = self._live.pop(record_id, None)
                if record is not None:
                    removed.append(record)
            return removed

        return self._mutate(_delete)

    def update_live(self, records: Iterable[ContentRecord]) -> int:
        updates = list(records)

        def _update() -> int:
            count = 0
            for record in updates:
                if record.id in self._live:
                    self._live[record.id] = record
                    count += 1
            return count

        return self._mutate(_update)

    def append_archive(self, entries: Iterable[ArchiveEntry]) -> int:
        new_entries = list(entries)

        def _append() -> int:
            self._archive.extend(new_entries)
            return len(new_entries)

        return self._mutate(_append)

    def query_archive(
        self,
        predicate: Callable[[ArchiveEntry], bool] | None = None,
        limit: int | None = None,
    ) -> list[ArchiveEntry]:
        with self.lock:
            entries = [e for e in self._archive if predicate is None or predicate(e)]
        if limit is not None:
            entries = entries[-max(0, limit):] if limit > 0 else []
        return entries

    def live_size(self) -> int:
        with self.lock:
            return len(self._live)

    def archive_size(self) -> int:
        with self.lock:
            return len(self._archive)


class JsonFileLiveStore(InMemoryLiveStore):
    """변경할 때마다 JSON 파일 하나에 통째로 저장하는 저장소."""

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self._load()

    def _load(self) -> None:
        data = _safe_read_json(self.path, {})
        if not isinstance(data, dict):
            logger.warning("live store file is not an object, starting empty: %s", self.path)
            return
        for raw in data.get("live") or []:
            if not isinstance(raw, dict):
                continue
            try:
                record = ContentRecord.from_dict(raw)
            except Exception as e:
                logger.warning("skipping bad live row id=%s: %s: %s", raw.get("id"), type(e).__name__, e)
                continue
            if record.id:
                self._live[record.id] = record
        for raw in data.get("archive") or []:
            if not isinstance(raw, dict):
                continue
            try:
                self._archive.append(ArchiveEntry.from_dict(raw))
            except Exception as e:
                logger.warning("skipping bad archive row id=%s: %s: %s", raw.get("id"), type(e).__name__, e)

    def _persist(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        payload = {
            "version": 1,
            "live": [r.to_dict() for r in self._live.values()],
            "archive": [e.to_dict() for e in self._archive],
        }
        _atomic_write_json(self.path, payload)
