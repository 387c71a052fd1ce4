"""Domain object owning the navigation edit buffer, window and model state."""
from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable

from navedit.config import EditorSettings
from navedit.io.nav_file import (
    BackingStoreError,
    NavTextSink,
    NavTextSource,
    open_nav_files,
)
from navedit.model import edit_operations
from navedit.model.edit_buffer import EditBuffer
from navedit.model.edit_operations import NavChange
from navedit.model.fix import EDITABLE_CHANNELS, Channel, Fix
from navedit.model.navigation_model import (
    ModelMode,
    ModelParameters,
    compute_model,
    update_made_good,
)
from navedit.model.plot_window import PickMode, PlotWindow

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str | None], None]

_MODEL_INPUTS = {
    ModelMode.OFF: frozenset({NavChange.POSITION}),
    ModelMode.MEAN: frozenset({NavChange.POSITION, NavChange.TIME, NavChange.FLAG}),
    ModelMode.DEAD_RECKONING: frozenset(
        {NavChange.POSITION, NavChange.TIME, NavChange.MOTION}
    ),
    ModelMode.INVERSION: frozenset({NavChange.POSITION, NavChange.TIME, NavChange.FLAG}),
}


class EditSession:
    """Pure-Python session for navigation editing.

    Every action returns True on success and False when there was nothing to
    act on (no file open, no data, empty selection, nothing under the cursor).
    ``BackingStoreError`` escapes only from file transitions, after the
    session has closed the failing file.
    """

    def __init__(
        self,
        settings: EditorSettings | None = None,
        message: MessageCallback | None = None,
    ) -> None:
        self.settings = settings or EditorSettings()
        self.buffer = EditBuffer(self.settings.buffer_capacity)
        self.window = PlotWindow(
            show_size=self.settings.show_size,
            step_size=self.settings.step_size,
            show_max=self.settings.show_max,
            step_max=self.settings.step_max,
            width=self.settings.plot_width,
            height=self.settings.plot_height,
            select_radius=self.settings.select_radius,
        )
        self.model = self.settings.model_parameters()
        self.pick_mode = self.settings.pick_mode
        self.output_enabled = self.settings.output_enabled
        # a full held tail would leave no room to load and read as end of file
        self.hold_size = max(0, min(self.settings.hold_size, self.buffer.capacity - 1))
        self.message = message
        self.path: Path | None = None
        self.offset_lon = 0.0
        self.offset_lat = 0.0
        self._offset_applied = (0.0, 0.0)
        self._source: NavTextSource | None = None
        self._sink: NavTextSink | None = None
        self.last_loaded = 0
        self.last_flushed = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def file_open(self) -> bool:
        return self._source is not None

    @property
    def model_active(self) -> bool:
        return self.model.mode is not ModelMode.OFF

    @property
    def fixes(self) -> list[Fix]:
        return self.buffer.fixes

    @property
    def timestamp_problem(self) -> bool:
        return self.buffer.timestamp_problem

    def visible_fixes(self) -> list[Fix]:
        return self.window.visible_fixes(self.buffer)

    def _notify(self, text: str | None) -> None:
        if self.message is not None:
            self.message(text)

    def _has_visible_data(self) -> bool:
        return self.file_open and self.window.count > 0

    # ------------------------------------------------------------------
    # File lifecycle
    # ------------------------------------------------------------------
    def open(self, path: Path | str, use_previous: bool = False) -> bool:
        """Open ``path`` and load the first buffer; False when it holds no data."""

        if self.file_open:
            self.close()
        self._notify("Opening navigation file...")
        try:
            self._source, self._sink = open_nav_files(
                path, use_previous=use_previous, output=self.output_enabled
            )
        finally:
            self._notify(None)
        self.path = Path(path)
        logger.info("Opened %s", self.path)
        if self._load() == 0:
            logger.warning("No data were read from %s", self.path)
            self._close_files()
            return False
        return True

    def _load(self, recompute: bool = True) -> int:
        assert self._source is not None
        try:
            loaded = self.buffer.load(self._source, self._offset_applied, self.message)
        except BackingStoreError:
            logger.exception("Read failure on %s; closing file", self.path)
            self._close_files()
            raise
        self.last_loaded = loaded
        if loaded and recompute:
            update_made_good(self.buffer.fixes)
            self.window.show_all(self.buffer, self.model_active)
            self._refresh_model()
        return loaded

    def _flush(self, hold: int) -> int:
        try:
            flushed = self.buffer.flush(hold, self._sink)
        except BackingStoreError:
            logger.exception("Write failure on %s; closing file", self.path)
            self._close_files()
            raise
        self.last_flushed = flushed
        return flushed

    def next_buffer(self) -> bool:
        """Flush all but the held tail and load more; close at end of source."""

        if not self.file_open:
            return False
        self._flush(self.hold_size)
        if self._load() == 0:
            flushed = self.last_flushed
            self._flush(0)
            self.last_flushed += flushed
            self._close_files()
        return True

    def close(self) -> bool:
        """Write out the buffer and, with output on, the rest of the source."""

        if not self.file_open:
            return False
        self._notify("Closing navigation file...")
        flushed = loaded = 0
        if self._sink is None:
            flushed = self._flush(0)
        else:
            while True:
                flushed += self._flush(0)
                count = self._load(recompute=False)
                loaded += count
                if count == 0:
                    break
        self.last_flushed, self.last_loaded = flushed, loaded
        self._close_files()
        self._notify(None)
        return True

    def done(self) -> bool:
        return self.close() if self.file_open else True

    def _close_files(self) -> None:
        if self._source is not None:
            self._source.close()
            if self._source.path.suffix == ".tmp":
                try:
                    self._source.path.unlink(missing_ok=True)
                except OSError as exc:
                    logger.warning("Unable to remove %s: %s", self._source.path, exc)
            self._source = None
        if self._sink is not None:
            self._sink.close()
            logger.info(
                "%d records written to %s", self._sink.records_written, self._sink.path
            )
            self._sink = None
        logger.info(
            "Closed %s after %d records loaded, %d flushed",
            self.path,
            self.buffer.loaded_total,
            self.buffer.flushed_total,
        )
        self.buffer.reset()
        self.window.reset()
        self.offset_lon = self.offset_lat = 0.0
        self._offset_applied = (0.0, 0.0)

    # ------------------------------------------------------------------
    # Recomputation
    # ------------------------------------------------------------------
    def _refresh_model(self) -> None:
        compute_model(
            self.buffer.fixes,
            self.model,
            (self.buffer.current, self.window.count),
            self.message,
        )
        self.window.update(self.buffer, self.model_active)

    def _apply(self, changes: set[NavChange]) -> bool:
        if not changes:
            return False
        if changes & {NavChange.TIME, NavChange.POSITION}:
            update_made_good(self.buffer.fixes)
        if changes & _MODEL_INPUTS[self.model.mode]:
            self._refresh_model()
        else:
            self.window.update(self.buffer, self.model_active)
        return True

    def _after_navigation(self, moved: bool) -> bool:
        if moved and self.model.mode is ModelMode.INVERSION:
            self._refresh_model()
        return moved

    # ------------------------------------------------------------------
    # Window navigation
    # ------------------------------------------------------------------
    def step(self, seconds: float | None = None) -> bool:
        if not self.file_open:
            return False
        amount = self.window.step_size if seconds is None else seconds
        return self._after_navigation(
            self.window.step(self.buffer, amount, self.model_active)
        )

    def go_start(self) -> bool:
        if not self.file_open:
            return False
        return self._after_navigation(self.window.go_start(self.buffer, self.model_active))

    def go_end(self) -> bool:
        if not self.file_open:
            return False
        return self._after_navigation(self.window.go_end(self.buffer, self.model_active))

    def show_all(self) -> bool:
        if not self.file_open:
            return False
        return self._after_navigation(self.window.show_all(self.buffer, self.model_active))

    def set_interval(self, x: int, which: int) -> bool:
        if not self.file_open:
            return False
        applied = self.window.set_interval(self.buffer, x, which, self.model_active)
        if applied and which == 2:
            self._after_navigation(True)
        return applied

    def resize(self, width: int, height: int) -> None:
        self.window.resize(width, height)
        self.window.update(self.buffer, self.model_active)

    def set_channel_enabled(self, channel: Channel, enabled: bool) -> bool:
        changed = self.window.set_channel_enabled(channel, enabled)
        if changed:
            self.window.update(self.buffer, self.model_active)
        return changed

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def set_pick_mode(self, mode: PickMode) -> None:
        self.pick_mode = mode

    def click(self, x: int, y: int, mode: PickMode | None = None) -> bool:
        if not self._has_visible_data():
            return False
        affected = self.window.hit_test(self.buffer, x, y, mode or self.pick_mode)
        return bool(affected)

    def select_all(self, channel: Channel) -> bool:
        """Select ``channel`` on every visible fix, clearing every other channel."""

        if not self._has_visible_data() or channel not in EDITABLE_CHANNELS:
            return False
        return bool(self.window.select_channel(self.buffer, channel))

    def deselect_all(self, channel: Channel) -> bool:
        if not self._has_visible_data():
            return False
        return self.window.deselect_all(self.buffer, channel)

    # ------------------------------------------------------------------
    # Model parameters
    # ------------------------------------------------------------------
    def set_model_mode(self, mode: ModelMode) -> bool:
        return self.update_model(mode=mode)

    def update_model(self, **changes) -> bool:
        """Replace model parameters (validated) and recompute the model."""

        self.model = replace(self.model, **changes)
        if self.buffer.is_empty:
            return False
        self._refresh_model()
        return True

    @property
    def model_parameters(self) -> ModelParameters:
        return self.model

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def _file_start(self) -> float:
        return self.buffer.file_start_time or 0.0

    def interpolate(self) -> bool:
        if not self._has_visible_data():
            return False
        return self._apply(edit_operations.interpolate(self.buffer.fixes, self._file_start()))

    def interpolate_repeats(self) -> bool:
        if not self._has_visible_data():
            return False
        return self._apply(
            edit_operations.interpolate_repeats(self.buffer.fixes, self._file_start())
        )

    def revert(self) -> bool:
        if not self._has_visible_data():
            return False
        return self._apply(edit_operations.revert(self.buffer.fixes, self._file_start()))

    def flag(self) -> bool:
        if not self._has_visible_data():
            return False
        return self._apply(edit_operations.flag_positions(self.buffer.fixes))

    def unflag(self) -> bool:
        if not self._has_visible_data():
            return False
        return self._apply(edit_operations.unflag_positions(self.buffer.fixes))

    def fix_time(self) -> bool:
        if not self._has_visible_data():
            return False
        changed = self._apply(edit_operations.fix_time(self.buffer.fixes, self._file_start()))
        if changed:
            fixes = self.buffer.fixes
            self.buffer.timestamp_problem = any(
                later.time_d <= earlier.time_d for earlier, later in zip(fixes, fixes[1:])
            )
        return changed

    def set_offset(self, offset_lon: float, offset_lat: float) -> None:
        self.offset_lon = offset_lon
        self.offset_lat = offset_lat

    def apply_offset(self) -> bool:
        """Bring every fix up to the current offset; repeated calls change nothing."""

        if self.buffer.is_empty:
            return False
        delta_lon = self.offset_lon - self._offset_applied[0]
        delta_lat = self.offset_lat - self._offset_applied[1]
        self._apply(edit_operations.apply_offset(self.buffer.fixes, delta_lon, delta_lat))
        self._offset_applied = (self.offset_lon, self.offset_lat)
        return True

    def use_model(self) -> bool:
        if not self._has_visible_data():
            return False
        return self._apply(edit_operations.use_model_position(self.buffer.fixes))

    def use_speed_made_good(self) -> bool:
        if not self._has_visible_data():
            return False
        return self._apply(edit_operations.use_speed_made_good(self.buffer.fixes))

    def use_course_made_good(self) -> bool:
        if not self._has_visible_data():
            return False
        return self._apply(edit_operations.use_course_made_good(self.buffer.fixes))
