"""Shared test fixtures for the caption_lexicon test suite.

WHY: Most test modules need the same pieces — a host tree holding a
caption window with a few segments, a virtual-time scheduler, a sample
backend answer, and an enrichment collaborator whose responses the test
releases by hand. Centralizing them keeps every test on the same data.

HOW: Plain helper functions build trees (so tests can build several);
pytest fixtures wrap the common cases. ControlledEnricher hands out one
future per enrich() call so tests decide the order responses arrive in.

RULES:
- Segment class is "ytp-caption-segment", window class "caption-window"
- Helpers discard the records produced while building the tree
- Each test gets fresh instances (no shared mutable state)
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Tuple

import pytest

from caption_lexicon.api.models import LexicalEntry
from caption_lexicon.config import EngineSettings
from caption_lexicon.core.host import Element, HostTree
from caption_lexicon.core.scheduler import VirtualScheduler

SEGMENT_CLASS = "ytp-caption-segment"
WINDOW_CLASS = "caption-window"
WORD_CLASS = "yt-ai-dict-word"


SAMPLE_ENTRY_DICT: Dict[str, Any] = {
    "query": "cats",
    "phonetics": {
        "uk": {"ipa": "/kæts/"},
        "us": {"ipa": "/kæts/"},
    },
    "definitions": [
        {
            "partOfSpeech": "noun",
            "level": "A1",
            "meaning": "貓（複數）",
            "synonyms": ["felines"],
            "antonyms": [],
            "example": {"en": "I love cats.", "zh": "我喜歡貓。"},
        }
    ],
    "verbForms": None,
    "contextAnalysis": {
        "translation": "貓",
        "explanation": "在句中指作為寵物的貓。",
    },
}


def make_segment(text: str) -> Element:
    return Element("span", classes=[SEGMENT_CLASS], text=text)


def make_caption_tree(*lines: str) -> Tuple[HostTree, Element, List[Element]]:
    """Build a tree: body > div.caption-window > span.ytp-caption-segment per line."""
    tree = HostTree()
    segments = [make_segment(line) for line in lines]
    window = Element("div", classes=[WINDOW_CLASS], children=segments)
    tree.root.append(window)
    tree.take_records()
    return tree, window, segments


def words_in(element: Element) -> List[Element]:
    return element.query_all([WORD_CLASS])


def word_texts_in(element: Element) -> List[str]:
    return [w.text_content for w in words_in(element)]


class ControlledEnricher:
    """Enrichment collaborator whose responses are released by the test."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []
        self._futures: List["asyncio.Future[LexicalEntry]"] = []

    async def enrich(self, text: str, context: str) -> LexicalEntry:
        future = asyncio.get_running_loop().create_future()
        self.calls.append((text, context))
        self._futures.append(future)
        return await future

    def resolve(self, index: int, entry: LexicalEntry) -> None:
        self._futures[index].set_result(entry)

    def fail(self, index: int, exc: Exception) -> None:
        self._futures[index].set_exception(exc)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture
def sample_entry() -> LexicalEntry:
    return LexicalEntry.from_dict(SAMPLE_ENTRY_DICT)


@pytest.fixture
def caption_tree():
    """Tree with two segments: "I love cats" and "the quick, brown fox"."""
    return make_caption_tree("I love cats", "the quick, brown fox")
