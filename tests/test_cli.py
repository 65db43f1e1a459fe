"""Tests for the caption-lexicon command-line interface.

WHY: The CLI is the only way to exercise the backend by hand. Its exit
codes and stdout/stderr split matter for scripting.

HOW: GeminiClient is patched in caption_lexicon.cli with a small fake
async context manager, so no network is used. Output is read with
pytest's capsys fixture.
"""

from __future__ import annotations

import json
from typing import Optional
from unittest.mock import patch

import pytest

from caption_lexicon.api.client import attach_tts_audio
from caption_lexicon.api.models import LexicalEntry
from caption_lexicon.cli import _file_stem, build_parser, main
from caption_lexicon.errors import ConfigurationError, LexiconError

from .conftest import SAMPLE_ENTRY_DICT


class FakeClient:
    """Stands in for GeminiClient; records what the CLI asked for."""

    def __init__(self, error: Optional[LexiconError] = None, query: Optional[str] = None) -> None:
        self.error = error
        self.query = query
        self.lookups = []
        self.checked = False
        self.init_kwargs = {}

    def __call__(self, **kwargs):
        self.init_kwargs = kwargs
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def enrich(self, text, context):
        self.lookups.append((text, context))
        if self.error is not None:
            raise self.error
        data = dict(SAMPLE_ENTRY_DICT)
        if self.query is not None:
            data["query"] = self.query
        return attach_tts_audio(LexicalEntry.from_dict(data))

    async def check_key(self):
        if self.error is not None:
            raise self.error
        self.checked = True

    async def fetch_audio(self, locator):
        return b"ID3-audio"


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TestParser:

    def test_lookup_arguments(self):
        args = build_parser().parse_args(
            ["lookup", "cats", "--context", "I love cats", "--json", "--audio", "uk"]
        )
        assert args.command == "lookup"
        assert args.text == "cats"
        assert args.context == "I love cats"
        assert args.json is True
        assert args.audio == "uk"

    def test_audio_region_restricted(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["lookup", "cats", "--audio", "au"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestTokenizeCommand:

    def test_prints_fragments(self, capsys):
        main(["tokenize", "don't stop"])
        out = capsys.readouterr().out.splitlines()
        assert out == [
            "word      \"don't\"",
            "separator ' '",
            "word      'stop'",
        ]


class TestLookupCommand:

    def test_text_output(self, capsys):
        fake = FakeClient()
        with patch("caption_lexicon.cli.GeminiClient", fake):
            main(["lookup", "cats", "--context", "I love cats", "--key", "k"])
        captured = capsys.readouterr()
        assert fake.lookups == [("cats", "I love cats")]
        assert captured.out.startswith("cats\n  UK: /kæts/")
        assert "Looking up" in captured.err

    def test_context_defaults_to_text(self):
        fake = FakeClient()
        with patch("caption_lexicon.cli.GeminiClient", fake):
            main(["lookup", "cats"])
        assert fake.lookups == [("cats", "cats")]

    def test_json_output(self, capsys):
        fake = FakeClient()
        with patch("caption_lexicon.cli.GeminiClient", fake):
            main(["lookup", "cats", "--json"])
        data = json.loads(capsys.readouterr().out)
        assert data["query"] == "cats"
        assert data["phonetics"]["us"]["audio"].endswith("tl=en-US")

    def test_audio_saved(self, tmp_path, capsys):
        fake = FakeClient()
        with patch("caption_lexicon.cli.GeminiClient", fake):
            main(["lookup", "cats", "--audio", "uk", "--audio-dir", str(tmp_path)])
        saved = tmp_path / "cats-uk-1.mp3"
        assert saved.read_bytes() == b"ID3-audio"
        assert "Saved audio" in capsys.readouterr().err

    def test_audio_filename_replaces_path_separators(self, tmp_path):
        fake = FakeClient(query="and/or")
        with patch("caption_lexicon.cli.GeminiClient", fake):
            main(["lookup", "and/or", "--audio", "uk", "--audio-dir", str(tmp_path)])
        assert (tmp_path / "and_or-uk-1.mp3").read_bytes() == b"ID3-audio"
        assert [p for p in tmp_path.iterdir() if p.is_dir()] == []

    def test_error_exits_with_code_1(self, capsys):
        fake = FakeClient(error=ConfigurationError("Gemini API key not configured."))
        with patch("caption_lexicon.cli.GeminiClient", fake):
            with pytest.raises(SystemExit) as exc_info:
                main(["lookup", "cats"])
        assert exc_info.value.code == 1
        assert "Error: Gemini API key not configured." in capsys.readouterr().err


class TestCheckKeyCommand:

    def test_success(self, capsys):
        fake = FakeClient()
        with patch("caption_lexicon.cli.GeminiClient", fake):
            main(["check-key", "--model", "other-model"])
        assert fake.checked is True
        assert fake.init_kwargs["model"] == "other-model"
        assert "Connection OK" in capsys.readouterr().err


class TestFileStem:

    def test_whitespace_and_separators_replaced(self):
        assert _file_stem("take it easy", "us") == "take_it_easy-us"
        assert _file_stem("a\\b/c", "uk") == "a_b_c-uk"

    def test_apostrophe_and_hyphen_kept(self):
        assert _file_stem("don't stop-believing", "uk") == "don't_stop-believing-uk"

    def test_nothing_usable_falls_back(self):
        assert _file_stem("/..", "uk") == "audio-uk"
