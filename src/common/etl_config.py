# This module defines the runtime configuration for the trip CSV loader.
# It exists so CLI runs and ad-hoc invocations share the same defaults and validation rules.
# The config is resolved from repo YAML defaults plus environment overrides to keep runs reproducible.
# Validation happens once here so the pipeline never re-checks options per row.

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

DEFAULT_CONFIG_PATH = "configs/etl.yaml"
DEFAULT_BATCH_SIZE = 5000
DEFAULT_INPUT_TIMEZONE = "America/New_York"
DEFAULT_CSV_DELIMITER = ","

ENV_OVERRIDES: dict[str, str] = {
    "input_csv_path": "ETL_INPUT_CSV_PATH",
    "duplicates_csv_path": "ETL_DUPLICATES_CSV_PATH",
    "batch_size": "ETL_BATCH_SIZE",
    "enable_timezone_conversion": "ETL_ENABLE_TIMEZONE_CONVERSION",
    "input_timezone": "ETL_INPUT_TIMEZONE",
    "csv_delimiter": "ETL_CSV_DELIMITER",
    "input_datetime_format": "ETL_INPUT_DATETIME_FORMAT",
    "bulk_insert_max_retries": "ETL_BULK_INSERT_MAX_RETRIES",
    "bulk_insert_retry_delay_seconds": "ETL_BULK_INSERT_RETRY_DELAY_SECONDS",
}

_BOOL_FIELDS = {"enable_timezone_conversion"}


class EtlConfig(BaseModel):
    """Validated options for one trip CSV load."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    input_csv_path: Path
    duplicates_csv_path: Path
    batch_size: int = DEFAULT_BATCH_SIZE
    enable_timezone_conversion: bool = True
    input_timezone: str | None = DEFAULT_INPUT_TIMEZONE
    csv_delimiter: str | None = None
    input_datetime_format: str | None = None
    bulk_insert_max_retries: int = 3
    bulk_insert_retry_delay_seconds: float = 2.0

    @field_validator("input_csv_path", "duplicates_csv_path", mode="before")
    @classmethod
    def _path_not_blank(cls, value: Any) -> Any:
        if value is None or not str(value).strip():
            raise ValueError("path must be provided")
        return value

    @field_validator("batch_size")
    @classmethod
    def _batch_size_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"batch_size must be a positive integer, got {value}")
        return value

    @field_validator("bulk_insert_max_retries")
    @classmethod
    def _retries_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"bulk_insert_max_retries must be >= 1, got {value}")
        return value

    @field_validator("bulk_insert_retry_delay_seconds")
    @classmethod
    def _delay_not_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError(f"bulk_insert_retry_delay_seconds must be >= 0, got {value}")
        return value

    @field_validator("input_datetime_format", "input_timezone")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("csv_delimiter")
    @classmethod
    def _empty_delimiter_to_none(cls, value: str | None) -> str | None:
        # Tab and space are legitimate delimiters, so only the empty string is dropped.
        return value or None

    @model_validator(mode="after")
    def _timezone_resolvable(self) -> EtlConfig:
        if not self.enable_timezone_conversion:
            return self
        if self.input_timezone is None or not self.input_timezone.strip():
            raise ValueError("input_timezone must be provided when time zone conversion is enabled.")
        try:
            ZoneInfo(self.input_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Invalid input time zone id '{self.input_timezone}'.") from exc
        return self

    @property
    def delimiter(self) -> str:
        """Single delimiter character; only the first character of the option is used."""

        if not self.csv_delimiter:
            return DEFAULT_CSV_DELIMITER
        return self.csv_delimiter[0]

    def to_dict(self) -> dict[str, Any]:
        payload = self.model_dump()
        payload["input_csv_path"] = str(self.input_csv_path)
        payload["duplicates_csv_path"] = str(self.duplicates_csv_path)
        return payload


def _load_yaml(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config at {path} must be a mapping, got: {type(loaded).__name__}")
    return dict(loaded)


def _env_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value (true/false), got: {value!r}")


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for field_name, env_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        overrides[field_name] = _env_bool(env_name, value) if field_name in _BOOL_FIELDS else value
    return overrides


def load_etl_config(
    *,
    config_path: str | None = DEFAULT_CONFIG_PATH,
    overrides: dict[str, Any] | None = None,
) -> EtlConfig:
    """Resolve YAML defaults, then environment variables, then explicit overrides.

    A missing YAML file is not an error; the environment alone can configure a run.
    """

    values: dict[str, Any] = {}
    if config_path and Path(config_path).exists():
        values.update(dict(_load_yaml(config_path).get("etl", {})))
    values.update(_env_overrides())
    values.update({key: value for key, value in (overrides or {}).items() if value is not None})

    try:
        return EtlConfig.model_validate(values)
    except ValidationError as exc:
        raise ValueError(f"Invalid ETL configuration: {exc}") from exc
