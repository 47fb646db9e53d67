"""Runtime and request configuration for page condensation."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import math
import os
from pathlib import Path
from typing import Any, Mapping


DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OPENROUTER_CHAT_MODEL = "openai/gpt-4o-mini"
DEFAULT_CONCURRENCY = 3
DEFAULT_REQUEST_TIMEOUT_SECONDS = 120.0

DEFAULT_SUMMARY_DENSITY = 70
DEFAULT_QUOTE_DENSITY = 30
SUMMARY_DENSITY_RANGE = (5, 100)
QUOTE_DENSITY_RANGE = (0, 100)


@dataclass(frozen=True, slots=True)
class DensitySettings:
    """Validated density dials; build through ``parse_density_settings``."""

    summary_density: int = DEFAULT_SUMMARY_DENSITY
    quote_density: int = DEFAULT_QUOTE_DENSITY


@dataclass(slots=True)
class SettingsValidationError(ValueError):
    """Raised when request fields cannot be turned into ``DensitySettings``."""

    issues: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return "Invalid density values: " + "; ".join(self.issues)


def _coerce_percent(
    name: str,
    raw: Any,
    *,
    bounds: tuple[int, int],
    fallback: int,
    issues: list[str],
) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return fallback

    if isinstance(raw, bool):
        issues.append(f"{name} must be numeric")
        return fallback

    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            issues.append(f"{name} must be numeric")
            return fallback

    if not isinstance(raw, (int, float)) or not math.isfinite(raw):
        issues.append(f"{name} must be numeric")
        return fallback

    if raw != int(raw):
        issues.append(f"{name} must be a whole number")
        return fallback

    value = int(raw)
    low, high = bounds
    if not low <= value <= high:
        issues.append(f"{name} must be between {low} and {high}")
        return fallback
    return value


def parse_density_settings(raw: Mapping[str, Any]) -> DensitySettings:
    """Validate loosely typed form values once at the request boundary.

    Missing or blank values take the defaults; numeric strings are accepted.
    Every problem is collected before raising ``SettingsValidationError``.
    """

    issues: list[str] = []
    summary = _coerce_percent(
        "summaryDensity",
        raw.get("summaryDensity"),
        bounds=SUMMARY_DENSITY_RANGE,
        fallback=DEFAULT_SUMMARY_DENSITY,
        issues=issues,
    )
    quote = _coerce_percent(
        "quoteDensity",
        raw.get("quoteDensity"),
        bounds=QUOTE_DENSITY_RANGE,
        fallback=DEFAULT_QUOTE_DENSITY,
        issues=issues,
    )
    if issues:
        raise SettingsValidationError(issues)
    return DensitySettings(summary_density=summary, quote_density=quote)


def parse_page_selection(raw: str | None) -> list[int] | None:
    """Parse a JSON array of page numbers, keeping positive integers only."""

    if raw is None or not raw.strip():
        return None

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None

    if not isinstance(parsed, list):
        return None

    selection: list[int] = []
    for entry in parsed:
        if isinstance(entry, bool):
            continue
        try:
            number = float(entry)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number) and number == int(number) and number > 0:
            selection.append(int(number))
    return selection


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_non_negative_float(*, name: str, raw_value: str) -> float:
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{name} must be >= 0")
    return value


@dataclass(frozen=True, slots=True)
class CondenserSettings:
    """Validated OpenRouter and pipeline settings."""

    api_key: str
    model: str = DEFAULT_OPENROUTER_CHAT_MODEL
    base_url: str = DEFAULT_OPENROUTER_BASE_URL
    concurrency: int = DEFAULT_CONCURRENCY
    request_timeout_seconds: float | None = DEFAULT_REQUEST_TIMEOUT_SECONDS
    trace_file: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CondenserSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        api_key = source.get("OPENROUTER_API_KEY", "").strip()
        if not api_key:
            raise ValueError("Missing required condenser environment variable: OPENROUTER_API_KEY")

        model = source.get("OPENROUTER_CHAT_MODEL", DEFAULT_OPENROUTER_CHAT_MODEL).strip()
        if not model:
            raise ValueError("OPENROUTER_CHAT_MODEL cannot be empty")

        base_url = source.get("OPENROUTER_BASE_URL", DEFAULT_OPENROUTER_BASE_URL).strip()
        if not base_url:
            raise ValueError("OPENROUTER_BASE_URL cannot be empty")
        if not (base_url.startswith("http://") or base_url.startswith("https://")):
            raise ValueError("OPENROUTER_BASE_URL must start with http:// or https://")

        concurrency = _parse_positive_int(
            name="CONDENSE_CONCURRENCY",
            raw_value=source.get("CONDENSE_CONCURRENCY", str(DEFAULT_CONCURRENCY)).strip(),
        )
        timeout = _parse_non_negative_float(
            name="CONDENSE_REQUEST_TIMEOUT_SECONDS",
            raw_value=source.get(
                "CONDENSE_REQUEST_TIMEOUT_SECONDS", str(DEFAULT_REQUEST_TIMEOUT_SECONDS)
            ).strip(),
        )

        trace_raw = source.get("CONDENSE_TRACE_FILE", "").strip()

        return cls(
            api_key=api_key,
            model=model,
            base_url=base_url.rstrip("/"),
            concurrency=concurrency,
            # zero disables the per-request timeout
            request_timeout_seconds=timeout or None,
            trace_file=Path(trace_raw) if trace_raw else None,
        )
