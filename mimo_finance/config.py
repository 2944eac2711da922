from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mimo_finance.aggregator import UNKNOWN_PARTNER
from mimo_finance.business_calendar import DEFAULT_ANCHOR_DOW
from mimo_finance.fuzzy import DEFAULT_THRESHOLD, FuzzySettings
from mimo_finance.utils.contracts import validate_output

SETTINGS_SCHEMA_VERSION = "0.3.0"


@dataclass(frozen=True)
class FinanceSettings:
    timezone: str | None = None
    week_start_dow: int = DEFAULT_ANCHOR_DOW
    fuzzy_threshold: float = DEFAULT_THRESHOLD
    use_initial_fallback: bool = True
    unknown_partner_label: str = UNKNOWN_PARTNER
    schema_version: str = field(default=SETTINGS_SCHEMA_VERSION)

    @property
    def fuzzy(self) -> FuzzySettings:
        return FuzzySettings(threshold=self.fuzzy_threshold, use_initial_fallback=self.use_initial_fallback)


def check_timezone(name: str | None) -> str | None:
    if name is None:
        return None
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone: {name!r}") from e
    return name


def settings_from_dict(data: dict[str, Any]) -> FinanceSettings:
    known = {f.name for f in fields(FinanceSettings)}
    values = {key: value for key, value in data.items() if key in known}
    settings = FinanceSettings(**values)
    check_timezone(settings.timezone)
    return settings


def load_settings(path: Path) -> FinanceSettings:
    """
    Read finance settings from JSON.

    Raises:
        FileNotFoundError: If the file is missing.
        ContractError: If the document violates the finance_settings schema.
        ValueError: If the time zone is not a known IANA name.
    """
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data: dict[str, Any] = json.load(handle)
    validate_output(data, "finance_settings", mode="FILING")
    return settings_from_dict(data)


def override_settings(settings: FinanceSettings, **overrides: Any) -> FinanceSettings:
    """Apply CLI overrides; None means "not given"."""
    values = {f.name: getattr(settings, f.name) for f in fields(FinanceSettings)}
    values.update({key: value for key, value in overrides.items() if value is not None})
    return settings_from_dict(values)
