"""Async HTTP client for the Gemini-backed dictionary and pronunciation audio.

WHY: A lookup turns a word or phrase plus its caption line into a
structured dictionary entry. The engine only knows the enrich()/
fetch_audio() collaborator contract; this module is the concrete
implementation that talks to the Gemini generateContent endpoint and
fetches text-to-speech audio.

HOW: Wraps httpx.AsyncClient. GeminiClient is an async context manager —
enter it to open the connection pool, exit to close it. enrich() builds
the dictionary prompt, posts it, extracts the model's JSON text, strips
markdown fences, validates it against LEXICAL_ENTRY_SCHEMA with
jsonschema, converts it to a LexicalEntry, and injects TTS audio
locators for the UK and US variants.

RULES:
- Always use the async context manager (async with GeminiClient(...) as client:)
- A missing credential raises ConfigurationError before any HTTP call
- httpx failures and non-2xx responses raise TransportError
- Undecodable or schema-invalid model output raises FormatError
- Audio locators are generated locally, never requested from the model
"""

from __future__ import annotations

import inspect
import json
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import jsonschema

from caption_lexicon.api.models import LEXICAL_ENTRY_SCHEMA, LexicalEntry, Phonetic
from caption_lexicon.config import (
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    MISSING_KEY_MESSAGE,
    OUTPUT_LANGUAGE,
    TTS_BASE_URL,
    TTS_LOCALES,
    CredentialProvider,
    EnvCredentialProvider,
)
from caption_lexicon.errors import ConfigurationError, FormatError, TransportError

logger = logging.getLogger(__name__)

FORMAT_ERROR_MESSAGE = (
    "AI response could not be parsed. "
    "This may be a temporary problem, please try again."
)
MISSING_CONTENT_MESSAGE = "API response format invalid: no analysis content found."
AUDIO_ERROR_MESSAGE = "Audio could not be loaded."

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_END_RE = re.compile(r"\n?```\s*$")

_PROMPT_TEMPLATE = """
Analyze the English text "{text}" within the context of the sentence: "{context}".
Provide a detailed, dictionary-style analysis.

You MUST respond with a single, valid JSON object and nothing else. Do not include any explanatory text, comments, or markdown like ```json.
The JSON object must strictly follow this structure:
{{
  "query": "The queried text",
  "phonetics": {{
    "uk": {{ "ipa": "/phonetic_uk/" }},
    "us": {{ "ipa": "/phonetic_us/" }}
  }},
  "definitions": [
    {{
      "partOfSpeech": "verb",
      "level": "B2",
      "meaning": "The primary definition in {language}.",
      "synonyms": ["similar", "alike"],
      "antonyms": ["different", "opposite"],
      "example": {{
        "en": "An English example sentence using the word.",
        "zh": "The {language} translation of the example."
      }}
    }}
  ],
  "verbForms": {{
    "present": "form",
    "past": "formed",
    "pastParticiple": "formed",
    "presentParticiple": "forming"
  }},
  "contextAnalysis": {{
    "translation": "The translation of the original text '{text}' in the given context, in {language}.",
    "explanation": "An explanation in {language} of why this translation is appropriate for the context."
  }}
}}

RULES:
1. All textual output (meanings, explanations, translations) MUST be in {language}.
2. For "phonetics", provide the International Phonetic Alphabet (IPA) string. If unknown, set the corresponding object (uk/us) to null.
3. "level" should be a CEFR level (e.g., A1, B2, C1). If unknown, set to null.
4. "synonyms" and "antonyms" must be arrays of strings. If none exist, use an empty array [].
5. "verbForms" is only for verbs. If the word is not a verb or has no variations, set this to null.
6. If the query is a phrase, "phonetics", "definitions", and "verbForms" should be null. Focus on providing a high-quality "contextAnalysis".
7. Ensure the final output is a single, clean JSON object.
"""


def build_prompt(text: str, context: str, language: str = OUTPUT_LANGUAGE) -> str:
    """Render the dictionary prompt for *text* inside *context*."""
    return _PROMPT_TEMPLATE.format(text=text, context=context, language=language)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json fence and a trailing ``` fence, if present."""
    cleaned = text.strip()
    cleaned = _FENCE_START_RE.sub("", cleaned)
    cleaned = _FENCE_END_RE.sub("", cleaned)
    return cleaned


def extract_analysis_text(payload: Any) -> str:
    """Pull the model's text out of a generateContent response body.

    RULES:
    - Path is candidates[0].content.parts[0].text
    - Any missing step raises FormatError
    """
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise FormatError(MISSING_CONTENT_MESSAGE) from None
    if not isinstance(text, str):
        raise FormatError(MISSING_CONTENT_MESSAGE)
    return text


def parse_entry(analysis_text: str) -> LexicalEntry:
    """Decode, validate and convert the model's JSON answer.

    Raises:
        FormatError: The text is not JSON, or does not match the schema.
    """
    try:
        data = json.loads(strip_code_fences(analysis_text))
    except ValueError as exc:
        logger.warning("Dictionary response is not valid JSON: %s", exc)
        raise FormatError(FORMAT_ERROR_MESSAGE) from exc

    try:
        jsonschema.validate(instance=data, schema=LEXICAL_ENTRY_SCHEMA)
    except jsonschema.ValidationError as exc:
        logger.warning("Dictionary response failed schema validation: %s", exc.message)
        raise FormatError(FORMAT_ERROR_MESSAGE) from exc

    return LexicalEntry.from_dict(data)


def tts_url(query: str, locale: str, base_url: str = TTS_BASE_URL) -> str:
    return "{base}&q={q}&tl={tl}".format(base=base_url, q=quote(query, safe=""), tl=locale)


def attach_tts_audio(entry: LexicalEntry, base_url: str = TTS_BASE_URL) -> LexicalEntry:
    """Give every regional variant a pronunciation audio locator.

    Variants the model left out are created with no IPA, so a phrase
    still gets UK and US audio.
    """
    if not entry.query:
        return entry
    for region, locale in TTS_LOCALES.items():
        phonetic = entry.phonetics.get(region) or Phonetic()
        phonetic.audio = tts_url(entry.query, locale, base_url)
        entry.phonetics[region] = phonetic
    return entry


def _error_detail(resp: httpx.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.reason_phrase or resp.text


class GeminiClient:
    """Async enrichment and audio collaborator backed by Gemini and Google TTS.

    WHY: The request lifecycle needs an ``enrich(text, context)`` coroutine
    and the audio player needs ``fetch_audio(locator)``. One client object
    provides both over a shared connection pool.

    HOW: Wraps httpx.AsyncClient with the Gemini base URL. The API key is
    fetched from the credential collaborator on every call so a key added
    after startup is honoured.

    RULES:
    - Use as: async with GeminiClient() as client: ...
    - credentials defaults to EnvCredentialProvider()
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        credentials: Optional[CredentialProvider] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        tts_base_url: Optional[str] = None,
        language: str = OUTPUT_LANGUAGE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._credentials = credentials or EnvCredentialProvider()
        self._base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self._model = model or GEMINI_MODEL
        self._tts_base_url = tts_base_url or TTS_BASE_URL
        self._language = language
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> GeminiClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(60.0, connect=10.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "GeminiClient must be used as an async context manager: "
                "async with GeminiClient() as client: ..."
            )
        return self._client

    async def _api_key(self) -> str:
        key = self._credentials.get_credential()
        if inspect.isawaitable(key):
            key = await key
        if not key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)
        return key

    async def _generate(self, api_key: str, prompt: str, json_output: bool) -> Dict[str, Any]:
        client = self._ensure_client()
        body: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if json_output:
            body["generationConfig"] = {"response_mime_type": "application/json"}

        try:
            resp = await client.post(
                "/models/{}:generateContent".format(self._model),
                params={"key": api_key},
                json=body,
            )
        except httpx.HTTPError as exc:
            logger.warning("Dictionary request failed: %s", exc)
            raise TransportError("API request failed: {}".format(exc)) from exc

        if resp.status_code != 200:
            raise TransportError(
                "API request failed ({}): {}".format(resp.status_code, _error_detail(resp)),
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise FormatError(FORMAT_ERROR_MESSAGE) from exc

    # ------------------------------------------------------------------
    # Collaborator contract
    # ------------------------------------------------------------------

    async def enrich(self, text: str, context: str) -> LexicalEntry:
        """Look up *text* as used in *context*.

        Args:
            text: The selected word or phrase.
            context: The whitespace-collapsed caption line it came from.

        Returns:
            A LexicalEntry with UK/US audio locators attached.

        Raises:
            ConfigurationError: No API key is configured.
            TransportError: The HTTP call failed or returned non-200.
            FormatError: The model's answer could not be parsed.
        """
        api_key = await self._api_key()
        logger.info("Looking up %r", text)
        payload = await self._generate(
            api_key, build_prompt(text, context, self._language), json_output=True
        )
        entry = parse_entry(extract_analysis_text(payload))
        return attach_tts_audio(entry, self._tts_base_url)

    async def fetch_audio(self, locator: str) -> bytes:
        """Download the pronunciation audio behind *locator*.

        Raises:
            TransportError: The download failed or returned non-2xx.
        """
        client = self._ensure_client()
        try:
            resp = await client.get(locator, follow_redirects=True)
        except httpx.HTTPError as exc:
            logger.warning("Audio fetch failed for %s: %s", locator, exc)
            raise TransportError(AUDIO_ERROR_MESSAGE) from exc
        if not resp.is_success:
            logger.warning("Audio fetch for %s returned HTTP %d", locator, resp.status_code)
            raise TransportError(AUDIO_ERROR_MESSAGE, status_code=resp.status_code)
        return resp.content

    async def check_key(self) -> None:
        """Send a minimal prompt to verify the configured key works.

        Raises:
            ConfigurationError: No API key is configured.
            TransportError: Gemini rejected the key or could not be reached.
        """
        api_key = await self._api_key()
        await self._generate(
            api_key,
            'Translate "Hello" to {}.'.format(self._language),
            json_output=False,
        )
