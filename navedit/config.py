"""Configuration helpers for navigation editor settings persistence."""
from __future__ import annotations

from configparser import ConfigParser, Error
from dataclasses import dataclass, fields
import logging
import os
from pathlib import Path
import sys
from typing import Optional

from navedit.model.navigation_model import ModelMode, ModelParameters
from navedit.model.plot_window import PickMode
from navedit.solver.chebyshev import SolverSettings

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "navedit.ini"

_SECTIONS: dict[str, tuple[str, ...]] = {
    "buffer": ("buffer_capacity", "hold_size"),
    "window": ("show_size", "step_size", "show_max", "step_max"),
    "model": (
        "model_mode",
        "mean_time_window",
        "drift_lon",
        "drift_lat",
        "weight_speed",
        "weight_acceleration",
        "dr_gap_ceiling",
        "ncycle",
        "bandwidth",
    ),
    "plot": ("pick_mode", "plot_width", "plot_height", "select_radius"),
    "output": ("output_enabled",),
}


@dataclass
class EditorSettings:
    buffer_capacity: int = 50000
    hold_size: int = 100
    show_size: float = 1000.0
    step_size: float = 750.0
    show_max: float = 2000.0
    step_max: float = 2000.0
    model_mode: ModelMode = ModelMode.OFF
    mean_time_window: float = 10.0
    drift_lon: float = 0.0
    drift_lat: float = 0.0
    weight_speed: float = 100.0
    weight_acceleration: float = 100.0
    dr_gap_ceiling: float = 300.0
    ncycle: int = 512
    bandwidth: float = 10000.0
    pick_mode: PickMode = PickMode.PICK
    plot_width: int = 767
    plot_height: int = 300
    select_radius: int = 10
    output_enabled: bool = True

    def solver_settings(self) -> SolverSettings:
        return SolverSettings(ncycle=self.ncycle, bandwidth=self.bandwidth)

    def model_parameters(self) -> ModelParameters:
        return ModelParameters(
            mode=self.model_mode,
            mean_time_window=self.mean_time_window,
            drift_lon=self.drift_lon,
            drift_lat=self.drift_lat,
            weight_speed=self.weight_speed,
            weight_acceleration=self.weight_acceleration,
            dr_gap_ceiling=self.dr_gap_ceiling,
            solver=self.solver_settings(),
        )


_DEFAULTS = EditorSettings()
_FIELD_TYPES = {field.name: type(getattr(_DEFAULTS, field.name)) for field in fields(EditorSettings)}
_VALID = {
    "buffer_capacity": lambda value: value >= 1,
    "hold_size": lambda value: value >= 0,
    "show_size": lambda value: value >= 0,
    "step_size": lambda value: value > 0,
    "show_max": lambda value: value > 0,
    "step_max": lambda value: value > 0,
    "plot_width": lambda value: value >= 1,
    "plot_height": lambda value: value >= 1,
    "select_radius": lambda value: value >= 0,
}


def _config_dir(main_script_path: Optional[Path]) -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    if main_script_path is not None:
        return main_script_path.resolve().parent
    main_module = sys.modules.get("__main__")
    if main_module and getattr(main_module, "__file__", None):
        return Path(main_module.__file__).resolve().parent
    return Path.cwd()


def config_path(main_script_path: Optional[Path] = None) -> Path:
    return _config_dir(main_script_path) / CONFIG_FILENAME


def _parse_value(name: str, raw: str, parser: ConfigParser, section: str):
    kind = _FIELD_TYPES[name]
    if kind is bool:
        return parser.getboolean(section, name)
    if kind is int:
        return int(raw)
    if kind is float:
        return float(raw)
    if kind is ModelMode:
        return ModelMode(raw.strip().lower())
    if kind is PickMode:
        return PickMode[raw.strip().upper()]
    return raw


def _format_value(value) -> str:
    if isinstance(value, ModelMode):
        return value.value
    if isinstance(value, PickMode):
        return value.name.lower()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def load_settings(path: Optional[Path] = None) -> EditorSettings:
    """Read settings from ``path``; anything missing or invalid keeps its default."""

    settings = EditorSettings()
    ini_path = path if path is not None else config_path(None)
    if not ini_path.exists():
        return settings
    parser = ConfigParser()
    try:
        with ini_path.open("r", encoding="utf-8") as handle:
            parser.read_file(handle)
    except (OSError, Error) as exc:
        logger.warning("Unable to read settings from %s: %s", ini_path, exc)
        return settings
    for section, names in _SECTIONS.items():
        if not parser.has_section(section):
            continue
        for name in names:
            raw = parser.get(section, name, fallback=None)
            if raw is None:
                continue
            try:
                value = _parse_value(name, raw, parser, section)
            except (ValueError, KeyError):
                logger.warning("Ignoring invalid %s.%s value %r", section, name, raw)
                continue
            if name in _VALID and not _VALID[name](value):
                logger.warning("Ignoring out-of-range %s.%s value %r", section, name, raw)
                continue
            setattr(settings, name, value)
    try:
        settings.model_parameters()
    except ValueError as exc:
        logger.warning("Ignoring invalid [model] settings: %s", exc)
        for name in _SECTIONS["model"]:
            setattr(settings, name, getattr(_DEFAULTS, name))
    return settings


def save_settings(settings: EditorSettings, path: Optional[Path] = None) -> None:
    config = ConfigParser()
    ini_path = path if path is not None else config_path(None)
    for section, names in _SECTIONS.items():
        config[section] = {name: _format_value(getattr(settings, name)) for name in names}
    try:
        with ini_path.open("w", encoding="utf-8") as handle:
            config.write(handle)
            handle.flush()
            os.fsync(handle.fileno())
    except OSError as exc:
        logger.warning("Unable to save settings to %s: %s", ini_path, exc)
