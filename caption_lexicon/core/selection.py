"""Modifier-drag selection of word ranges within one caption segment.

WHY: Learners look up phrases ("take it easy"), not only single words.
Holding the modifier and sweeping the pointer across words selects a
contiguous run; the lookup must receive the phrase exactly as written,
including its commas and spacing, not a space-joined guess.

HOW: A two-state machine (IDLE, SELECTING). While SELECTING, the first
hovered word becomes the anchor; each later hover highlights the run of
word elements between anchor and hovered word in the anchor's parent
(or its segment), by document order. A click commits the run. The phrase
is rebuilt by slicing that element's text from the first occurrence of
the first word to the last occurrence of the last word.

RULES:
- Highlighting works in either direction (hovered before or after anchor)
- The range lives in the anchor's parent, or failing that in the
  segment enclosing the anchor; a word outside both highlights nothing
- Key release, a committing click, or clear() returns to IDLE and
  removes every highlight
- A click without the modifier is a one-word range
- If either boundary word cannot be found in the text (or the bounds
  invert), fall back to joining the words with single spaces
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from caption_lexicon.config import EngineSettings
from caption_lexicon.core.host import Element, Node

logger = logging.getLogger(__name__)


class SelectionState(str, enum.Enum):
    IDLE = "idle"
    SELECTING = "selecting"


@dataclass
class SelectionCommit:
    """A resolved lookup request produced by a click."""

    text: str
    context: str
    origin: Element


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def build_text_from_words(words: Sequence[Element], scope: Optional[Element] = None) -> str:
    """Rebuild the literal phrase spanned by *words* from their scope's text.

    Args:
        words: Word elements in document order, all under *scope*.
        scope: Element whose text is sliced; defaults to the first word's
            parent.

    Returns:
        The substring of the parent text from the first word to the last
        word, punctuation and spacing preserved; or the words joined by
        single spaces when the boundaries cannot be located.
    """
    if not words:
        return ""
    texts = [w.text_content for w in words]
    parent = scope if scope is not None else words[0].parent
    if parent is None:
        return " ".join(texts)

    parent_text = parent.text_content
    first, last = texts[0], texts[-1]
    start = parent_text.find(first)
    last_start = parent_text.rfind(last)
    if start == -1 or last_start == -1:
        return " ".join(texts)

    end = last_start + len(last)
    if end <= start:
        logger.debug("Selection bounds inverted for %r; joining words", texts)
        return " ".join(texts)
    return parent_text[start:end]


class SelectionController:
    """Tracks one modifier-drag gesture at a time.

    WHY: The gesture spans several events (key down, pointer moves, click,
    key up) and the highlight must always reflect the current range.

    HOW: Keeps the state, the anchor word, and the list of currently
    highlighted word elements so clearing never needs a tree scan.
    """

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self.settings = settings or EngineSettings()
        self.state = SelectionState.IDLE
        self.anchor: Optional[Element] = None
        self._highlighted: List[Element] = []

    @property
    def active(self) -> bool:
        return self.state is SelectionState.SELECTING

    @property
    def highlighted(self) -> List[Element]:
        return list(self._highlighted)

    def is_word(self, node: Optional[Node]) -> bool:
        return isinstance(node, Element) and node.has_class(self.settings.word_class)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def key_down(self, key: str) -> None:
        if key == self.settings.modifier_key and not self.active:
            self.state = SelectionState.SELECTING
            self.anchor = None

    def key_up(self, key: str) -> None:
        if key == self.settings.modifier_key:
            self.clear()

    def pointer_over(self, node: Optional[Node]) -> None:
        if not self.active or not self.is_word(node):
            return
        if self.anchor is None:
            self.anchor = node
            self.highlight(node, node)
        else:
            self.highlight(self.anchor, node)

    def click(self, node: Optional[Node]) -> Optional[SelectionCommit]:
        """Resolve a click on a word into a lookup, or None.

        While selecting with an anchor, the anchor..clicked range is
        committed; while selecting without an anchor, the click is ignored.
        """
        if not self.is_word(node):
            return None

        if self.active:
            if self.anchor is None:
                return None
            anchor = self.anchor
            scope = self.range_scope(anchor, node)
            words = self.words_between(anchor, node)
            commit = None
            if words:
                commit = SelectionCommit(
                    text=build_text_from_words(words, scope),
                    context=self.context_for(anchor),
                    origin=node,
                )
            self.clear()
            return commit

        commit = SelectionCommit(
            text=node.text_content,
            context=self.context_for(node),
            origin=node,
        )
        self.clear()
        return commit

    def clear(self) -> None:
        self.state = SelectionState.IDLE
        self.anchor = None
        self.clear_highlight()

    # ------------------------------------------------------------------
    # Ranges
    # ------------------------------------------------------------------

    def range_scope(self, start: Element, end: Element) -> Optional[Element]:
        """The element a range from *start* to *end* lives in, or None.

        The anchor's parent when it holds both words, else the segment
        enclosing the anchor when that holds both.
        """
        parent = start.parent
        if parent is not None and parent.contains(end):
            return parent
        container = start.closest(self.settings.container_classes)
        if container is not None and container.contains(end):
            return container
        return None

    def words_between(self, start: Element, end: Element) -> List[Element]:
        """Word elements from *start* to *end* inclusive, in document order."""
        scope = self.range_scope(start, end)
        if scope is None:
            return []
        words = scope.query_all((self.settings.word_class,))
        try:
            start_index = words.index(start)
            end_index = words.index(end)
        except ValueError:
            return []
        low, high = min(start_index, end_index), max(start_index, end_index)
        return words[low:high + 1]

    def highlight(self, start: Element, end: Element) -> None:
        self.clear_highlight()
        selected_class = self.settings.selected_class
        for word in self.words_between(start, end):
            word.add_class(selected_class)
            self._highlighted.append(word)

    def clear_highlight(self) -> None:
        selected_class = self.settings.selected_class
        for word in self._highlighted:
            word.remove_class(selected_class)
        self._highlighted = []

    def context_for(self, word: Element) -> str:
        """The whitespace-collapsed text of the segment holding *word*."""
        container = word.closest(self.settings.container_classes)
        if container is None:
            return ""
        return collapse_whitespace(container.text_content)
