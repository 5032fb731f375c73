from __future__ import annotations

from collections.abc import Callable
from itertools import count
from typing import Any, Protocol

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

Job = Callable[[], Any]
SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[Exception], None]


class PersistenceRunner(Protocol):
    def submit(self, job: Job, on_success: SuccessCallback, on_failure: FailureCallback) -> None: ...


class ImmediateRunner:
    def submit(self, job: Job, on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        try:
            result = job()
        except Exception as exc:
            on_failure(exc)
            return
        on_success(result)


class _JobSignals(QObject):
    succeeded = Signal(int, object)
    failed = Signal(int, object)


class _JobRunnable(QRunnable):
    def __init__(self, token: int, job: Job, signals: _JobSignals) -> None:
        super().__init__()
        self._token = token
        self._job = job
        self._signals = signals

    def run(self) -> None:
        try:
            result = self._job()
        except Exception as exc:
            self._signals.failed.emit(self._token, exc)
            return
        self._signals.succeeded.emit(self._token, result)


class ThreadPoolRunner(QObject):
    """Runs persistence jobs off the GUI thread.

    Results come back through queued signals, so callbacks always execute on
    the thread that owns the runner.
    """

    def __init__(self, pool: QThreadPool | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._tokens = count(1)
        self._callbacks: dict[int, tuple[SuccessCallback, FailureCallback]] = {}
        self._signals = _JobSignals()
        self._signals.succeeded.connect(self._on_succeeded)
        self._signals.failed.connect(self._on_failed)

    @property
    def pending(self) -> int:
        return len(self._callbacks)

    def submit(self, job: Job, on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        token = next(self._tokens)
        self._callbacks[token] = (on_success, on_failure)
        self._pool.start(_JobRunnable(token, job, self._signals))

    def wait_for_done(self, timeout_ms: int = -1) -> bool:
        return self._pool.waitForDone(timeout_ms)

    @Slot(int, object)
    def _on_succeeded(self, token: int, result: Any) -> None:
        callbacks = self._callbacks.pop(token, None)
        if callbacks is not None:
            callbacks[0](result)

    @Slot(int, object)
    def _on_failed(self, token: int, exc: Any) -> None:
        callbacks = self._callbacks.pop(token, None)
        if callbacks is not None:
            callbacks[1](exc)
