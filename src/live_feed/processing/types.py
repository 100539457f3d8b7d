from __future__ import annotations

from typing import Any, Callable

from live_feed.models.record import ContentRecord

LogFunc = Callable[[str], None]
NowFunc = Callable[[], float]
AnalyzeFunc = Callable[[str], "dict[str, Any] | None"]
RecordListener = Callable[[ContentRecord], None]
