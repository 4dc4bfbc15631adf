from __future__ import annotations

import codecs
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .utils import env_int, env_path, load_yaml_file

DEFAULT_SOURCE_DIR = Path("UnclaimedFunds") / "ALL STATES Unclaimed Property Audit - DMF"
DEFAULT_OUTPUT_DIR = Path("UnclaimedFunds") / "CONSOLIDATED DMF"
DEFAULT_SPREADSHEET_EXTENSIONS = (".xlsx", ".xlsm", ".xls")

ENV_CONFIG_PATH = "UNCLAIMED_FUNDS_CONFIG"
ENV_SOURCE_DIR = "UNCLAIMED_FUNDS_SOURCE_DIR"
ENV_OUTPUT_DIR = "UNCLAIMED_FUNDS_OUTPUT_DIR"
ENV_LOG_DIR = "UNCLAIMED_FUNDS_LOG_DIR"
ENV_MIN_YEAR = "UNCLAIMED_FUNDS_MIN_YEAR"


class ConfigError(ValueError):
    """Raised when the settings file or an override holds an invalid value."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    delay_seconds: float = 3.0


@dataclass
class Settings:
    source_dir: Path = DEFAULT_SOURCE_DIR
    output_dir: Path = DEFAULT_OUTPUT_DIR
    log_dir: Path = DEFAULT_OUTPUT_DIR / "Logs"
    min_year: int = 2024
    exclusion_marker: str = "RPS"
    inclusion_marker: str = "Source"
    empty_marker: str = "EMPTY"
    survivor_marker: str = "SURVIVOR"
    header_marker: str = "Account"
    legacy_spreadsheet_year: str | None = "2011"
    spreadsheet_extensions: tuple[str, ...] = DEFAULT_SPREADSHEET_EXTENSIONS
    encoding: str = "utf-8"
    line_terminator: str = "\n"
    csv_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=5, delay_seconds=3.0))
    spreadsheet_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=5, delay_seconds=2.0))


@dataclass
class AppConfig:
    settings: Settings
    path: Path | None = None


def _coerce_int(value: Any, *, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{field_name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{field_name}' must be an integer") from exc


def _coerce_float(value: Any, *, field_name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{field_name}' must be a number") from exc


def _coerce_marker(value: Any, *, field_name: str) -> str:
    if value is None:
        raise ConfigError(f"'{field_name}' must be a non-empty string")
    text = str(value)
    if not text.strip():
        raise ConfigError(f"'{field_name}' must be a non-empty string")
    return text


def _coerce_path(value: Any, *, field_name: str) -> Path:
    if value is None or not str(value).strip():
        raise ConfigError(f"'{field_name}' must be a path")
    return Path(str(value)).expanduser()


def _coerce_encoding(value: Any) -> str:
    text = _coerce_marker(value, field_name="encoding").strip()
    try:
        codecs.lookup(text)
    except LookupError as exc:
        raise ConfigError(f"'encoding' names an unknown codec: {text}") from exc
    return text


def _coerce_line_terminator(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError("'line_terminator' must be a non-empty string")
    return value


def _build_retry_policy(data: Any, defaults: RetryPolicy, *, field_name: str) -> RetryPolicy:
    if not data:
        return defaults
    if not isinstance(data, dict):
        raise ConfigError(f"'{field_name}' must be provided as a mapping when specified")

    max_attempts = _coerce_int(data.get("max_attempts", defaults.max_attempts), field_name=f"{field_name}.max_attempts")
    if max_attempts < 1:
        raise ConfigError(f"'{field_name}.max_attempts' must be at least 1")

    delay = _coerce_float(data.get("delay_seconds", defaults.delay_seconds), field_name=f"{field_name}.delay_seconds")
    if delay < 0:
        raise ConfigError(f"'{field_name}.delay_seconds' must be greater than or equal to 0")

    return RetryPolicy(max_attempts=max_attempts, delay_seconds=delay)


def _build_extensions(value: Any) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_SPREADSHEET_EXTENSIONS
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigError("'spreadsheet_extensions' must be a list of file extensions")
    extensions: list[str] = []
    for item in value:
        text = str(item).strip().lower()
        if not text:
            continue
        if not text.startswith("."):
            text = f".{text}"
        if text == ".csv":
            raise ConfigError("'spreadsheet_extensions' cannot include '.csv'")
        extensions.append(text)
    return tuple(extensions)


def _build_settings(data: dict[str, Any]) -> Settings:
    if not isinstance(data, dict):
        raise ConfigError("'settings' must be provided as a mapping")
    defaults = Settings()

    source_dir = _coerce_path(data.get("source_dir", defaults.source_dir), field_name="source_dir")
    output_dir = _coerce_path(data.get("output_dir", defaults.output_dir), field_name="output_dir")
    log_dir_raw = data.get("log_dir")
    log_dir = Path(log_dir_raw).expanduser() if log_dir_raw else output_dir / "Logs"

    legacy_raw = data.get("legacy_spreadsheet_year", defaults.legacy_spreadsheet_year)
    legacy_year = str(legacy_raw).strip() if legacy_raw is not None else None

    return Settings(
        source_dir=source_dir,
        output_dir=output_dir,
        log_dir=log_dir,
        min_year=_coerce_int(data.get("min_year", defaults.min_year), field_name="min_year"),
        exclusion_marker=_coerce_marker(data.get("exclusion_marker", defaults.exclusion_marker), field_name="exclusion_marker"),
        inclusion_marker=_coerce_marker(data.get("inclusion_marker", defaults.inclusion_marker), field_name="inclusion_marker"),
        empty_marker=_coerce_marker(data.get("empty_marker", defaults.empty_marker), field_name="empty_marker"),
        survivor_marker=_coerce_marker(data.get("survivor_marker", defaults.survivor_marker), field_name="survivor_marker"),
        header_marker=_coerce_marker(data.get("header_marker", defaults.header_marker), field_name="header_marker"),
        legacy_spreadsheet_year=legacy_year or None,
        spreadsheet_extensions=_build_extensions(data.get("spreadsheet_extensions")),
        encoding=_coerce_encoding(data.get("encoding", defaults.encoding)),
        line_terminator=_coerce_line_terminator(data.get("line_terminator", defaults.line_terminator)),
        csv_retry=_build_retry_policy(data.get("csv_retry"), defaults.csv_retry, field_name="csv_retry"),
        spreadsheet_retry=_build_retry_policy(
            data.get("spreadsheet_retry"), defaults.spreadsheet_retry, field_name="spreadsheet_retry"
        ),
    )


def default_config() -> AppConfig:
    return AppConfig(settings=Settings())


def load_config(path: Path) -> AppConfig:
    try:
        data = load_yaml_file(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"YAML syntax error in {path}: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    settings = _build_settings(data.get("settings", {}) or {})
    return AppConfig(settings=settings, path=path)


def apply_overrides(
    config: AppConfig,
    *,
    source_dir: Path | None = None,
    output_dir: Path | None = None,
    log_dir: Path | None = None,
    min_year: int | None = None,
) -> AppConfig:
    """Layer environment variables and then explicit arguments over the loaded settings.

    When the output directory changes but no log directory is given, logs follow
    the new output directory.
    """
    settings = config.settings
    try:
        env_min_year = env_int(ENV_MIN_YEAR)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    source = source_dir or env_path(ENV_SOURCE_DIR)
    output = output_dir or env_path(ENV_OUTPUT_DIR)
    logs = log_dir or env_path(ENV_LOG_DIR)
    year = min_year if min_year is not None else env_min_year

    changes: dict[str, Any] = {}
    if source is not None:
        changes["source_dir"] = source
    if output is not None:
        changes["output_dir"] = output
        if logs is None and settings.log_dir == settings.output_dir / "Logs":
            changes["log_dir"] = output / "Logs"
    if logs is not None:
        changes["log_dir"] = logs
    if year is not None:
        changes["min_year"] = year

    if not changes:
        return config
    return replace(config, settings=replace(settings, **changes))
