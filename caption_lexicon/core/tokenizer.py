"""Lossless word/separator tokenization of caption text.

WHY: Every caption line is rendered as a row of clickable words with the
original punctuation and spacing left between them. The tokenizer is the
single place that decides what counts as a "word", and it must never
lose or reorder characters — otherwise the rendered line would differ
from what the host drew.

HOW: A regex matches runs of Latin letters with internal apostrophes or
hyphens, bounded by word boundaries. re.split with a capturing group
returns the words at odd indices and the text between them at even
indices; empty pieces are dropped.

RULES:
- Pure and total: never raises, no side effects
- "".join(f.text for f in tokenize(s)) == s for every string s
- tokenize(join(tokenize(s))) == tokenize(s)
- No Latin letters → only SEPARATOR fragments (callers skip rendering)
- Word boundaries are ASCII-only; non-ASCII letters are separators
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterable, List

# Runs of Latin letters plus apostrophes/hyphens ("don't", "well-known").
# ASCII word boundaries: "café" yields the word "caf".
_SPLIT_RE = re.compile(r"(\b[a-zA-Z'-]+\b)", re.ASCII)
_LATIN_RE = re.compile(r"[a-zA-Z]", re.ASCII)


class FragmentKind(str, enum.Enum):
    """Whether a fragment is a clickable word or the text around it."""

    WORD = "word"
    SEPARATOR = "separator"


@dataclass(frozen=True)
class Fragment:
    """One piece of a tokenized caption line."""

    kind: FragmentKind
    text: str

    @property
    def is_word(self) -> bool:
        return self.kind is FragmentKind.WORD


def has_latin_letters(text: str) -> bool:
    """Return True if *text* contains at least one ASCII Latin letter."""
    return _LATIN_RE.search(text) is not None


def has_words(text: str) -> bool:
    """Return True if tokenizing *text* would produce at least one WORD fragment.

    Latin letters alone are not enough: "2nd" has letters but no word
    boundary before them, so it tokenizes to a single separator.
    """
    return has_latin_letters(text) and _SPLIT_RE.search(text) is not None


def tokenize(raw: str) -> List[Fragment]:
    """Split *raw* into ordered word and separator fragments.

    Args:
        raw: Caption text exactly as the host rendered it.

    Returns:
        Fragments in left-to-right order; concatenating their text
        reproduces *raw*.
    """
    fragments: List[Fragment] = []
    for index, part in enumerate(_SPLIT_RE.split(raw)):
        if not part:
            continue
        # re.split puts captured groups at odd indices
        if index % 2 == 1:
            fragments.append(Fragment(FragmentKind.WORD, part))
        else:
            fragments.append(Fragment(FragmentKind.SEPARATOR, part))
    return fragments


def word_texts(fragments: Iterable[Fragment]) -> List[str]:
    """Return the text of every WORD fragment, in order."""
    return [f.text for f in fragments if f.is_word]


def join_fragments(fragments: Iterable[Fragment]) -> str:
    return "".join(f.text for f in fragments)
