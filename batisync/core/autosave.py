"""Timers that decide when an edited report should be written."""

from __future__ import annotations

from PySide6.QtCore import QObject, QTimer, Signal, Slot

DEFAULT_DEBOUNCE_MS = 1000
DEFAULT_PERIODIC_MS = 30000

REASON_DEBOUNCE = "debounce"
REASON_PERIODIC = "periodic"
REASON_MANUAL = "manual"
REASON_LEAVE = "leave"


class AutoSaveController(QObject):
    """Two independent paths to ``save_requested`` for a dirty report.

    The debounce timer restarts on every edit and fires once input pauses.
    The periodic timer ticks while the report stays dirty, so a save still
    happens when edits never pause long enough for the debounce.
    """

    save_requested = Signal(str)
    dirty_changed = Signal(bool)

    def __init__(
        self,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        periodic_ms: int = DEFAULT_PERIODIC_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._dirty = False
        self.last_reason: str | None = None

        self._debounce_timer = QTimer(self)
        self._debounce_timer.setSingleShot(True)
        self._debounce_timer.setInterval(max(1, debounce_ms))
        self._debounce_timer.timeout.connect(self._on_debounce_timeout)

        self._periodic_timer = QTimer(self)
        self._periodic_timer.setInterval(max(1, periodic_ms))
        self._periodic_timer.timeout.connect(self._on_periodic_tick)

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def debounce_pending(self) -> bool:
        return self._debounce_timer.isActive()

    @property
    def periodic_active(self) -> bool:
        return self._periodic_timer.isActive()

    def mark_dirty(self) -> None:
        self._set_dirty(True)
        # only the latest edit's countdown survives
        self._debounce_timer.start()
        if not self._periodic_timer.isActive():
            self._periodic_timer.start()

    def clear_dirty(self) -> None:
        self._set_dirty(False)
        self.stop()

    def stop(self) -> None:
        self._debounce_timer.stop()
        self._periodic_timer.stop()

    def flush_now(self, reason: str = REASON_MANUAL) -> None:
        self._debounce_timer.stop()
        self._request(reason)

    @Slot()
    def _on_debounce_timeout(self) -> None:
        self._request(REASON_DEBOUNCE)

    @Slot()
    def _on_periodic_tick(self) -> None:
        self._request(REASON_PERIODIC)

    def _request(self, reason: str) -> None:
        if not self._dirty:
            return
        self.last_reason = reason
        self.save_requested.emit(reason)

    def _set_dirty(self, dirty: bool) -> None:
        if self._dirty != dirty:
            self._dirty = dirty
            self.dirty_changed.emit(dirty)
