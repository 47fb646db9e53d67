"""Page condensation through an external chat model."""

from .config import (
    CondenserSettings,
    DensitySettings,
    SettingsValidationError,
    parse_density_settings,
    parse_page_selection,
)
from .openrouter import CondensationRequestError, OpenRouterCondenser
from .policy import (
    CondensationPolicy,
    CondensationTimeout,
    CondensedPage,
    EmptyCondensationResult,
    ExtractedQuote,
)
from .trace import CondensationTrace, FileTraceSink, LoggingTraceSink

__all__ = [
    "CondensationPolicy",
    "CondensationRequestError",
    "CondensationTimeout",
    "CondensationTrace",
    "CondensedPage",
    "CondenserSettings",
    "DensitySettings",
    "EmptyCondensationResult",
    "ExtractedQuote",
    "FileTraceSink",
    "LoggingTraceSink",
    "OpenRouterCondenser",
    "SettingsValidationError",
    "parse_density_settings",
    "parse_page_selection",
]
