"""Per-segment processing records, weakly keyed by the host element.

WHY: The reconciler and the sweeper both need to know whether a caption
segment still needs tokenizing: its text changed since the last pass, or
the host re-rendered it and wiped our word elements without the text
changing. The records must never keep a detached segment alive — the
host owns segment lifetimes, not us.

HOW: A weakref.WeakKeyDictionary maps each segment element to a
SegmentRecord. When the host drops its last reference to a segment, the
record disappears with it. The rendered-token check looks at the live
subtree rather than trusting the stored flag, which is what catches
external re-renders.

RULES:
- should_reprocess(): text differs from last commit, OR the committed text
  has words but the subtree holds zero word elements
- commit() stores the text; has_tokens is True only if the text has words
- Never raises for any container/text input
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import List, Optional

from caption_lexicon.config import WORD_CLASS
from caption_lexicon.core.host import Element
from caption_lexicon.core.scheduler import TimerHandle
from caption_lexicon.core.tokenizer import has_words


@dataclass
class SegmentRecord:
    """Engine-owned metadata for one caption segment."""

    last_text: Optional[str] = None
    has_tokens: bool = False
    pending_timer: Optional[TimerHandle] = None


class SegmentRegistry:
    """Weak side-table of SegmentRecords keyed by segment identity."""

    def __init__(self, word_class: str = WORD_CLASS) -> None:
        self._word_class = word_class
        self._records: "weakref.WeakKeyDictionary[Element, SegmentRecord]" = (
            weakref.WeakKeyDictionary()
        )

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, container: Element) -> bool:
        return container in self._records

    def get(self, container: Element) -> Optional[SegmentRecord]:
        return self._records.get(container)

    def _record_for(self, container: Element) -> SegmentRecord:
        record = self._records.get(container)
        if record is None:
            record = SegmentRecord()
            self._records[container] = record
        return record

    def token_count(self, container: Element) -> int:
        """Number of rendered word elements currently inside *container*."""
        return len(container.query_all((self._word_class,)))

    def should_reprocess(self, container: Element, current_text: str) -> bool:
        """Decide whether *container* needs another tokenization pass.

        Args:
            container: The caption segment element.
            current_text: Its current (stripped) text.

        Returns:
            True if the text changed since the last commit, or if the
            segment should hold word elements but has none (wiped by a
            re-render). Text without words never needs another pass.
        """
        record = self._records.get(container)
        if record is None or record.last_text != current_text:
            return True
        return record.has_tokens and self.token_count(container) == 0

    def commit(self, container: Element, text: str) -> None:
        record = self._record_for(container)
        record.last_text = text
        record.has_tokens = has_words(text)

    # -- debounce timers ----------------------------------------------

    def set_timer(self, container: Element, handle: TimerHandle) -> Optional[TimerHandle]:
        """Store *handle* as the segment's pending timer; return the previous one."""
        record = self._record_for(container)
        previous = record.pending_timer
        record.pending_timer = handle
        return previous

    def pop_timer(self, container: Element) -> Optional[TimerHandle]:
        record = self._records.get(container)
        if record is None:
            return None
        handle, record.pending_timer = record.pending_timer, None
        return handle

    def pending_timers(self) -> List[TimerHandle]:
        return [
            record.pending_timer
            for record in list(self._records.values())
            if record.pending_timer is not None
        ]

    def cancel_all_timers(self) -> int:
        """Cancel every pending segment timer and return how many there were."""
        count = 0
        for record in list(self._records.values()):
            if record.pending_timer is not None:
                record.pending_timer.cancel()
                record.pending_timer = None
                count += 1
        return count
