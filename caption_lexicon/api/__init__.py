"""Dictionary backend package — async HTTP interface to Gemini and TTS audio.

WHY: The overlay engine only depends on the enrich()/fetch_audio()
collaborator contract. This package is the concrete backend: prompt
construction, response validation, and pronunciation audio download.

HOW: GeminiClient (client.py) wraps httpx.AsyncClient; LexicalEntry and
its parts (models.py) are the typed result.

RULES:
- All HTTP calls go through GeminiClient (no direct httpx usage elsewhere)
- Responses are validated with jsonschema before conversion
"""

from caption_lexicon.api.client import GeminiClient
from caption_lexicon.api.models import (
    ContextAnalysis,
    Definition,
    Example,
    LexicalEntry,
    Phonetic,
    VerbForms,
)

__all__ = [
    "ContextAnalysis",
    "Definition",
    "Example",
    "GeminiClient",
    "LexicalEntry",
    "Phonetic",
    "VerbForms",
]
