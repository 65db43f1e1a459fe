"""Result panel contract and a plain-text implementation.

WHY: The engine decides WHAT the panel shows (loading, an entry, an
error, nothing) and WHERE it is anchored; presentation belongs to the
host. PanelRenderer is that boundary. TextPanel is the renderer used by
the CLI and the tests: it keeps the current view and renders entries as
readable text.

HOW: render_entry_text() walks a LexicalEntry section by section — title
and pronunciations, meaning in context, numbered senses with level,
synonyms, antonyms and example, then verb forms — and joins the
non-empty sections with blank lines.

RULES:
- Sections with no content are omitted entirely
- Regional variants print in TTS_LOCALES order ("uk" then "us")
- No trailing whitespace on any line; output ends with one newline
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from caption_lexicon.api.models import LexicalEntry
from caption_lexicon.config import TTS_LOCALES

_REGION_LABELS = {"uk": "UK", "us": "US"}


class PanelRenderer(Protocol):
    def show_loading(self, title: str, anchor: Any) -> None: ...

    def show_entry(self, entry: LexicalEntry, anchor: Any) -> None: ...

    def show_error(self, message: str, anchor: Any) -> None: ...

    def close(self) -> None: ...


class PanelKind(str, enum.Enum):
    LOADING = "loading"
    ENTRY = "entry"
    ERROR = "error"


@dataclass
class PanelView:
    """What the panel currently shows and where."""

    kind: PanelKind
    title: str
    body: str
    anchor: Any = None
    entry: Optional[LexicalEntry] = None


def _render_title(entry: LexicalEntry) -> str:
    lines = [entry.query]
    for region in TTS_LOCALES:
        phonetic = entry.phonetics.get(region)
        if phonetic is None or not phonetic.ipa:
            continue
        lines.append("  {}: {}".format(_REGION_LABELS.get(region, region.upper()), phonetic.ipa))
    return "\n".join(lines)


def _render_context(entry: LexicalEntry) -> str:
    ctx = entry.context_analysis
    if ctx is None or not ctx.translation:
        return ""
    lines = ["In context:", '  "{}"'.format(ctx.translation)]
    if ctx.explanation:
        lines.append("  {}".format(ctx.explanation))
    return "\n".join(lines)


def _render_definitions(entry: LexicalEntry) -> str:
    blocks: List[str] = []
    for number, definition in enumerate(entry.definitions, start=1):
        header = "{}. {}".format(number, definition.part_of_speech).rstrip()
        if definition.level:
            header += " [{}]".format(definition.level)
        lines = [header, "   {}".format(definition.meaning)]
        if definition.synonyms:
            lines.append("   Synonyms: {}".format(", ".join(definition.synonyms)))
        if definition.antonyms:
            lines.append("   Antonyms: {}".format(", ".join(definition.antonyms)))
        if definition.example is not None and definition.example.en:
            lines.append("   e.g. {}".format(definition.example.en))
            if definition.example.zh:
                lines.append("        {}".format(definition.example.zh))
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def _render_verb_forms(entry: LexicalEntry) -> str:
    forms = entry.verb_forms
    if forms is None:
        return ""
    pairs = [
        ("Present", forms.present),
        ("Past", forms.past),
        ("Past participle", forms.past_participle),
        ("Present participle", forms.present_participle),
    ]
    present = ["{} {}".format(label, value) for label, value in pairs if value]
    if not present:
        return ""
    return "Verb forms: " + ", ".join(present)


def render_entry_text(entry: LexicalEntry) -> str:
    """Render a LexicalEntry as plain text for a terminal or log."""
    sections = [
        _render_title(entry),
        _render_context(entry),
        _render_definitions(entry),
        _render_verb_forms(entry),
    ]
    return "\n\n".join(s for s in sections if s) + "\n"


class TextPanel:
    """PanelRenderer that records the current view as text.

    ``view`` is None while the panel is closed. ``history`` keeps every
    view shown, oldest first, which is what tests and the CLI inspect.
    """

    def __init__(self) -> None:
        self.view: Optional[PanelView] = None
        self.history: List[PanelView] = []

    @property
    def is_open(self) -> bool:
        return self.view is not None

    def _show(self, view: PanelView) -> None:
        self.view = view
        self.history.append(view)

    def show_loading(self, title: str, anchor: Any) -> None:
        self._show(PanelView(PanelKind.LOADING, "Lookup: {}".format(title), "Analyzing...", anchor))

    def show_entry(self, entry: LexicalEntry, anchor: Any) -> None:
        self._show(PanelView(PanelKind.ENTRY, "Dictionary", render_entry_text(entry), anchor, entry))

    def show_error(self, message: str, anchor: Any) -> None:
        self._show(PanelView(PanelKind.ERROR, "Error", message, anchor))

    def close(self) -> None:
        self.view = None
