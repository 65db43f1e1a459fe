"""Error taxonomy for caption lookups and audio playback.

WHY: Callers (the request lifecycle, the audio player, the CLI) need to
tell a missing API key apart from a network failure or an unparseable
model response, and show each with a short human-readable message.

HOW: One base class, LexiconError, with a subclass per failure family.
The message passed to the constructor is the text shown to the user.

RULES:
- ConfigurationError is raised before any network attempt
- TransportError carries the HTTP status code when one exists
- FormatError covers JSON decoding and schema validation failures
- Stale responses and selection fallbacks are NOT errors
"""

from __future__ import annotations

from typing import Optional


class LexiconError(Exception):
    """Base exception for all caption_lexicon failures."""


class ConfigurationError(LexiconError):
    """Raised when the dictionary backend is not configured (missing API key)."""


class TransportError(LexiconError):
    """Raised when the enrichment or audio backend fails at the HTTP layer.

    WHY: Callers need the status code to tell auth failures from outages.

    RULES:
    - status_code is None for connection-level failures (DNS, timeouts)
    - message is the user-facing summary
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class FormatError(LexiconError):
    """Raised when a successful response cannot be parsed into a LexicalEntry."""


class PlaybackError(LexiconError):
    """Raised by an audio sink when a clip cannot be played."""
