from __future__ import annotations

import threading
from typing import Callable

from live_feed.processing.types import LogFunc


class IntervalTimer:
    """고정 주기로 콜백을 호출하는 데몬 스레드 타이머.

    각 컴포넌트(수집/발행/유지보수)는 서로 독립된 타이머를 가진다. 콜백에서 발생한
    예외는 로그만 남기고 다음 틱으로 넘어간다. `stop()`은 대기 중인 틱을 즉시
    깨워 종료시킨다.
    """

    def __init__(
        self,
        name: str,
        interval_sec: float,
        func: Callable[[], object],
        *,
        logger: LogFunc,
        run_immediately: bool = True,
    ) -> None:
        if interval_sec <= 0:
            raise ValueError(f"{name}: interval_sec must be positive")
        self.name = name
        self._interval_sec = float(interval_sec)
        self._func = func
        self._log = logger
        self._run_immediately = run_immediately
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"timer-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, join_timeout_sec: float | None = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(join_timeout_sec)
        self._thread = None

    def signal_stop(self) -> None:
        self._stop_event.set()

    def _run(self) -> None:
        stop_event = self._stop_event
        if not self._run_immediately and stop_event.wait(self._interval_sec):
            return
        while not stop_event.is_set():
            self._tick_once()
            if stop_event.wait(self._interval_sec):
                break

    def _tick_once(self) -> None:
        self.tick_count += 1
        try:
            self._func()
        except Exception as e:
            self._log(f"❌ {self.name} 틱 오류: {type(e).__name__}: {e}")
