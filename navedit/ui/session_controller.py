"""Qt bridge exposing an :class:`EditSession` to a presentation layer."""
from __future__ import annotations

import logging
from pathlib import Path

from PyQt5 import QtCore

from navedit.io.nav_file import BackingStoreError
from navedit.model.edit_session import EditSession
from navedit.model.fix import Channel
from navedit.model.navigation_model import ModelMode
from navedit.model.plot_window import PickMode

logger = logging.getLogger(__name__)


class NavEditController(QtCore.QObject):
    """Forward gestures and operation triggers to the session and report back.

    Data edits emit ``dataChanged``; selection gestures emit
    ``selectionChanged``. Busy messages from long operations are re-emitted as
    ``busyMessage`` / ``busyCleared``.
    """

    busyMessage = QtCore.pyqtSignal(str)
    busyCleared = QtCore.pyqtSignal()
    dataChanged = QtCore.pyqtSignal()
    selectionChanged = QtCore.pyqtSignal()
    fileClosed = QtCore.pyqtSignal()
    warningMessage = QtCore.pyqtSignal(str, str)

    def __init__(self, session: EditSession | None = None) -> None:
        super().__init__()
        self._session = session or EditSession()
        self._session.message = self._relay_message

    @property
    def session(self) -> EditSession:
        return self._session

    def _relay_message(self, text: str | None) -> None:
        if text is None:
            self.busyCleared.emit()
        else:
            self.busyMessage.emit(text)

    def _emit_if(self, ok: bool, signal) -> bool:
        if ok:
            signal.emit()
        return ok

    def _report_failure(self, title: str, exc: BackingStoreError) -> None:
        logger.error("%s failed: %s", title, exc)
        self.busyCleared.emit()
        self.warningMessage.emit(title, str(exc))
        self.fileClosed.emit()

    def _guard_file(self, action, title: str) -> bool:
        was_open = self._session.file_open
        try:
            ok = action()
        except BackingStoreError as exc:
            self._report_failure(title, exc)
            return False
        if was_open and not self._session.file_open:
            self.fileClosed.emit()
        elif ok:
            self.dataChanged.emit()
        return ok

    # ------------------------------------------------------------------
    # File transitions
    # ------------------------------------------------------------------
    def open_file(self, path: Path | str, use_previous: bool = False) -> bool:
        try:
            ok = self._session.open(path, use_previous=use_previous)
        except BackingStoreError as exc:
            self._report_failure("Open File", exc)
            return False
        if not ok:
            self.warningMessage.emit(
                "Open File", f"No navigation data were read from {path}"
            )
            return False
        self.dataChanged.emit()
        if self._session.timestamp_problem:
            self.warningMessage.emit(
                "Open File",
                "Duplicate or reverse order time stamps detected; "
                "time interpolation is available.",
            )
        return True

    def next_buffer(self) -> bool:
        return self._guard_file(self._session.next_buffer, "Next Buffer")

    def close_file(self) -> bool:
        return self._guard_file(self._session.close, "Close File")

    def done(self) -> bool:
        return self._guard_file(self._session.done, "Done")

    # ------------------------------------------------------------------
    # Window and selection
    # ------------------------------------------------------------------
    def resize(self, width: int, height: int) -> None:
        self._session.resize(width, height)
        self.dataChanged.emit()

    def set_channel_enabled(self, channel: Channel, enabled: bool) -> bool:
        return self._emit_if(
            self._session.set_channel_enabled(channel, enabled), self.dataChanged
        )

    def set_pick_mode(self, mode: PickMode) -> None:
        self._session.set_pick_mode(mode)

    def click(self, x: int, y: int) -> bool:
        return self._emit_if(self._session.click(x, y), self.selectionChanged)

    def deselect_all(self, channel: Channel) -> bool:
        return self._emit_if(self._session.deselect_all(channel), self.selectionChanged)

    def step(self, seconds: float | None = None) -> bool:
        return self._emit_if(self._session.step(seconds), self.dataChanged)

    def go_start(self) -> bool:
        return self._emit_if(self._session.go_start(), self.dataChanged)

    def go_end(self) -> bool:
        return self._emit_if(self._session.go_end(), self.dataChanged)

    def show_all(self) -> bool:
        return self._emit_if(self._session.show_all(), self.dataChanged)

    def set_interval(self, x: int, which: int) -> bool:
        return self._emit_if(self._session.set_interval(x, which), self.dataChanged)

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------
    def set_model_mode(self, mode: ModelMode) -> bool:
        return self._emit_if(self._session.set_model_mode(mode), self.dataChanged)

    def set_model_weights(self, weight_speed: float, weight_acceleration: float) -> bool:
        return self._emit_if(
            self._session.update_model(
                weight_speed=weight_speed, weight_acceleration=weight_acceleration
            ),
            self.dataChanged,
        )

    def set_drift(self, drift_lon: float, drift_lat: float) -> bool:
        return self._emit_if(
            self._session.update_model(drift_lon=drift_lon, drift_lat=drift_lat),
            self.dataChanged,
        )

    def set_mean_time_window(self, seconds: float) -> bool:
        return self._emit_if(
            self._session.update_model(mean_time_window=seconds), self.dataChanged
        )

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def interpolate(self) -> bool:
        return self._emit_if(self._session.interpolate(), self.dataChanged)

    def interpolate_repeats(self) -> bool:
        return self._emit_if(self._session.interpolate_repeats(), self.dataChanged)

    def revert(self) -> bool:
        return self._emit_if(self._session.revert(), self.dataChanged)

    def flag(self) -> bool:
        return self._emit_if(self._session.flag(), self.dataChanged)

    def unflag(self) -> bool:
        return self._emit_if(self._session.unflag(), self.dataChanged)

    def fix_time(self) -> bool:
        return self._emit_if(self._session.fix_time(), self.dataChanged)

    def apply_offset(self, offset_lon: float, offset_lat: float) -> bool:
        self._session.set_offset(offset_lon, offset_lat)
        return self._emit_if(self._session.apply_offset(), self.dataChanged)

    def use_model(self) -> bool:
        return self._emit_if(self._session.use_model(), self.dataChanged)

    def use_speed_made_good(self) -> bool:
        return self._emit_if(self._session.use_speed_made_good(), self.dataChanged)

    def use_course_made_good(self) -> bool:
        return self._emit_if(self._session.use_course_made_good(), self.dataChanged)
