"""Configuration constants, engine timings, and .env credential loading.

WHY: Centralizes every tunable value — backend endpoints, debounce delays,
sweep cadence, and the host class names the engine recognizes — so they
are easy to find and override without touching engine logic.

HOW: python-dotenv loads the .env file on import. Backend settings are
module-level strings read from the environment. Engine timings and class
names are bundled per engine instance in EngineSettings, whose defaults
come from the module constants. EnvCredentialProvider is the default
credential collaborator.

RULES:
- API key is loaded from .env / environment, never hardcoded
- Missing key → ConfigurationError from load_api_key(), None from
  EnvCredentialProvider.get_credential()
- All delays are float seconds
- Backend defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Awaitable, Optional, Protocol, Tuple, Union

from dotenv import load_dotenv

from caption_lexicon.errors import ConfigurationError

# Load .env from the working directory
load_dotenv()

# ---------------------------------------------------------------------------
# Dictionary backend (Gemini generateContent)
# ---------------------------------------------------------------------------

GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite")
TTS_BASE_URL = os.getenv(
    "TTS_BASE_URL", "https://translate.google.com/translate_tts?ie=UTF-8&client=tw-ob"
)

OUTPUT_LANGUAGE = os.getenv("LOOKUP_OUTPUT_LANGUAGE", "Traditional Chinese")
"""Language of meanings, translations and explanations in lookup results."""

MISSING_KEY_MESSAGE = (
    "Gemini API key not configured. "
    "Set GEMINI_API_KEY in the environment or .env file."
)

# Regional variants for which pronunciation audio locators are generated.
TTS_LOCALES: dict[str, str] = {
    "uk": "en-GB",
    "us": "en-US",
}

# ---------------------------------------------------------------------------
# Engine timings
# ---------------------------------------------------------------------------

NEW_SEGMENT_DELAY_S = 0.0
"""Delay before tokenizing a freshly inserted caption segment."""

UPDATED_SEGMENT_DELAY_S = 0.15
"""Debounce window for segments whose text is still streaming in."""

SWEEP_SEGMENT_DELAY_S = 0.05
"""Delay used when the periodic sweep finds a segment needing work."""

SWEEP_INTERVAL_S = 0.4
"""Cadence of the periodic backstop sweep."""

# ---------------------------------------------------------------------------
# Host class names
# ---------------------------------------------------------------------------

CONTAINER_CLASSES: Tuple[str, ...] = ("ytp-caption-segment", "caption-segment")
WATCH_ROOT_CLASSES: Tuple[str, ...] = (
    "ytp-caption-window-container",
    "caption-window",
    "captions-text",
)
WORD_CLASS = "yt-ai-dict-word"
SELECTED_CLASS = "selected"
MODIFIER_KEY = "Shift"


@dataclass
class EngineSettings:
    """Per-engine timings and host class names.

    WHY: Tests and alternative hosts need different class names or faster
    timings without patching module globals.

    RULES:
    - Defaults mirror the module-level constants
    - container_classes and watch_root_classes match if ANY class matches
    """

    new_segment_delay_s: float = NEW_SEGMENT_DELAY_S
    updated_segment_delay_s: float = UPDATED_SEGMENT_DELAY_S
    sweep_segment_delay_s: float = SWEEP_SEGMENT_DELAY_S
    sweep_interval_s: float = SWEEP_INTERVAL_S
    container_classes: Tuple[str, ...] = CONTAINER_CLASSES
    watch_root_classes: Tuple[str, ...] = WATCH_ROOT_CLASSES
    word_class: str = WORD_CLASS
    selected_class: str = SELECTED_CLASS
    modifier_key: str = MODIFIER_KEY


def load_api_key() -> str:
    """Load the Gemini API key from the environment.

    WHY: Every dictionary lookup needs the key; the CLI wants a hard
    failure with a clear message when it is absent.

    RULES:
    - Raises ConfigurationError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("GEMINI_API_KEY", "").strip()
    if not key:
        raise ConfigurationError(MISSING_KEY_MESSAGE)
    return key


class CredentialProvider(Protocol):
    """Source of the backend API key; may answer synchronously or not."""

    def get_credential(self) -> Union[Optional[str], Awaitable[Optional[str]]]: ...


class EnvCredentialProvider:
    """Credential collaborator backed by an explicit key or the environment.

    An explicit ``api_key`` wins; otherwise GEMINI_API_KEY is read on every
    call so a key added to the environment later is picked up.
    """

    def __init__(self, api_key: Optional[str] = None) -> None:
        self._api_key = api_key

    def get_credential(self) -> Optional[str]:
        if self._api_key and self._api_key.strip():
            return self._api_key.strip()
        try:
            return load_api_key()
        except ConfigurationError:
            return None
