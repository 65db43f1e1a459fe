"""Fixed-cadence backstop pass over every watched caption region.

WHY: Mutation delivery is not a perfect signal — batches get coalesced,
some hosts swap text without a record we can attribute, and text can
appear outside any recognized segment. The sweeper re-checks everything
on a timer so a missed mutation costs at most one sweep interval.

HOW: Every SWEEP_INTERVAL_S, for each watched root element, every segment
with text is checked against the SegmentRegistry and, if needed,
scheduled through the reconciler's debounce path. Then loose text nodes
(text with at least one word, not inside a word element and with no word-element
sibling) are tokenized in place.

RULES:
- Idempotent: a sweep over an unchanged tree schedules and rewrites nothing
- Never processes a segment directly — always via Reconciler.schedule()
- Per-segment failures are logged and the sweep continues
- stop() cancels the repeating timer; after stop() no tick does work
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from caption_lexicon.config import EngineSettings
from caption_lexicon.core.host import Element, HostTree, TextNode
from caption_lexicon.core.reconciler import Reconciler
from caption_lexicon.core.registry import SegmentRegistry
from caption_lexicon.core.scheduler import Scheduler, TimerHandle
from caption_lexicon.core.tokenizer import has_words

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """Periodically reconciles segments and loose text the observer missed."""

    def __init__(
        self,
        tree: HostTree,
        registry: SegmentRegistry,
        reconciler: Reconciler,
        scheduler: Scheduler,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.tree = tree
        self.registry = registry
        self.reconciler = reconciler
        self.scheduler = scheduler
        self.settings = settings or EngineSettings()
        self._handle: Optional[TimerHandle] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._stopped = False
        self._handle = self.scheduler.call_every(self.settings.sweep_interval_s, self._tick)

    def stop(self) -> None:
        self._stopped = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        if self._stopped:
            return
        self.sweep()

    def watched_roots(self) -> List[Element]:
        return self.tree.root.query_all(self.settings.watch_root_classes)

    def sweep(self) -> int:
        """Run one pass now.

        Returns:
            Segments scheduled plus loose text nodes tokenized.
        """
        containers: Dict[Element, None] = {}
        for root in self.watched_roots():
            for container in root.query_all(self.settings.container_classes):
                containers[container] = None

        work = 0
        for container in containers:
            try:
                text = container.text_content.strip()
                if text and self.registry.should_reprocess(container, text):
                    self.reconciler.schedule(container, self.settings.sweep_segment_delay_s)
                    work += 1
            except Exception:
                logger.exception("Sweep failed for segment %r", container)

        for root in self.watched_roots():
            for node in self.loose_text_nodes(root):
                try:
                    if self.reconciler.wrap_text_node(node):
                        work += 1
                except Exception:
                    logger.exception("Sweep failed to wrap loose text %r", node)

        if work:
            logger.debug("Sweep found %d item(s) needing work", work)
        return work

    def loose_text_nodes(self, root: Element) -> List[TextNode]:
        """Word-bearing text under *root* that has not been tokenized yet."""
        word_class = self.settings.word_class
        found: List[TextNode] = []
        for node in root.iter_text_nodes():
            text = node.data
            if not has_words(text):
                continue
            parent = node.parent
            if parent is None or parent.has_class(word_class):
                continue
            if any(
                isinstance(sibling, Element) and sibling.has_class(word_class)
                for sibling in parent.children
            ):
                continue
            found.append(node)
        return found
