"""Mutation-driven, debounced re-tokenization of caption segments.

WHY: Caption renderers insert, rewrite and remove segments constantly —
often word by word as speech is recognized. Re-tokenizing on every raw
mutation would flicker and waste work; ignoring mutations would leave
plain, unclickable text behind. The reconciler turns each batch of host
mutations into at most one pending tokenization pass per segment.

HOW: For every batch, added subtrees mark the segments they contain as
NEW and mark an enclosing segment as UPDATED; text and child-list changes
mark their enclosing segment as UPDATED unless it is already NEW in the
same batch. NEW segments are scheduled with a near-zero delay, UPDATED
segments with a short debounce. Scheduling a segment cancels its
previous timer. When a timer fires, the segment is processed against
its text at that moment: every word-bearing text node outside a word
element is replaced by word elements and separator text nodes.

RULES:
- One pending timer per segment; rescheduling replaces it
- Processing always reads the live text at fire time
- A failure in one segment is logged and never stops the others
- Existing segments are processed synchronously on attach()
- After teardown() no timer callback does any work
- Our own rewrites run under HostTree.quiet() and are not re-observed
"""

from __future__ import annotations

import enum
import logging
import weakref
from typing import Callable, Dict, List, Optional, Sequence

from caption_lexicon.config import EngineSettings
from caption_lexicon.core.host import Element, HostTree, MutationRecord, Node, TextNode
from caption_lexicon.core.registry import SegmentRegistry
from caption_lexicon.core.scheduler import Scheduler
from caption_lexicon.core.tokenizer import has_words, tokenize

logger = logging.getLogger(__name__)


class Priority(str, enum.Enum):
    NEW = "new"
    UPDATED = "updated"


def render_fragments(text: str, word_class: str) -> List[Node]:
    """Materialize *text* as word elements and separator text nodes."""
    nodes: List[Node] = []
    for fragment in tokenize(text):
        if fragment.is_word:
            nodes.append(Element("span", classes=(word_class,), text=fragment.text))
        else:
            nodes.append(TextNode(fragment.text))
    return nodes


class Reconciler:
    """Keeps the word layer of every caption segment in sync with the host.

    WHY: Segments appear and change asynchronously and out of order. The
    reconciler is the only component that rewrites segment content, so it
    owns the debounce discipline that keeps rewrites rare and consistent.

    HOW: attach() subscribes to the tree's MutationFeed and processes
    pre-existing segments. handle_mutations() classifies one batch and
    schedules segments through schedule(). Timers hold only a weak
    reference to their segment.
    """

    def __init__(
        self,
        tree: HostTree,
        registry: SegmentRegistry,
        scheduler: Scheduler,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.tree = tree
        self.registry = registry
        self.scheduler = scheduler
        self.settings = settings or EngineSettings()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def is_container(self, node: Node) -> bool:
        return isinstance(node, Element) and node.has_any_class(self.settings.container_classes)

    def enclosing_container(self, node: Node) -> Optional[Element]:
        return node.closest(self.settings.container_classes)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> int:
        """Subscribe to host mutations and process existing segments.

        Returns:
            The number of pre-existing segments processed.
        """
        if self._unsubscribe is None:
            self._unsubscribe = self.tree.feed.subscribe(self.handle_mutations)

        processed = 0
        for container in self.tree.root.query_all(self.settings.container_classes):
            if not container.text_content:
                continue
            try:
                if self.process_container(container):
                    processed += 1
            except Exception:
                logger.exception("Error processing existing segment %r", container)
        logger.info("Reconciler attached; processed %d existing segment(s)", processed)
        return processed

    def teardown(self) -> int:
        """Stop observing and cancel every pending segment timer."""
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        cancelled = self.registry.cancel_all_timers()
        logger.info("Reconciler torn down; cancelled %d pending timer(s)", cancelled)
        return cancelled

    # ------------------------------------------------------------------
    # Mutation handling
    # ------------------------------------------------------------------

    def classify(self, records: Sequence[MutationRecord]) -> Dict[Element, Priority]:
        """Map every affected segment in one batch to NEW or UPDATED.

        NEW always wins over UPDATED for the same segment in one batch.
        """
        marks: Dict[Element, Priority] = {}
        container_classes = self.settings.container_classes

        for record in records:
            for node in record.added_nodes:
                if not isinstance(node, Element):
                    continue
                if self.is_container(node):
                    marks[node] = Priority.NEW
                for container in node.query_all(container_classes):
                    marks[container] = Priority.NEW
                if node.parent is not None:
                    enclosing = self.enclosing_container(node.parent)
                    if enclosing is not None and enclosing not in marks:
                        marks[enclosing] = Priority.UPDATED

            target = record.target
            element = target if isinstance(target, Element) else target.parent
            if element is None:
                continue
            container = self.enclosing_container(element)
            if container is not None and container not in marks:
                marks[container] = Priority.UPDATED

        return marks

    def handle_mutations(self, records: Sequence[MutationRecord]) -> int:
        """Schedule processing for every segment touched by one batch.

        Returns:
            The number of segments scheduled.
        """
        if self._closed:
            return 0

        scheduled = 0
        for container, priority in self.classify(records).items():
            if not container.text_content.strip():
                continue
            if priority is Priority.NEW:
                delay = self.settings.new_segment_delay_s
            else:
                delay = self.settings.updated_segment_delay_s
            self.schedule(container, delay)
            scheduled += 1
        return scheduled

    def schedule(self, container: Element, delay: float) -> None:
        """(Re)start the debounce timer for *container*."""
        if self._closed:
            return
        ref = weakref.ref(container)
        handle = self.scheduler.call_later(delay, lambda: self._fire(ref))
        previous = self.registry.set_timer(container, handle)
        if previous is not None:
            previous.cancel()
        logger.debug("Scheduled segment %r in %.3fs", container, delay)

    def _fire(self, ref: "weakref.ReferenceType[Element]") -> None:
        if self._closed:
            return
        container = ref()
        if container is None:
            return
        self.registry.pop_timer(container)
        try:
            self.process_container(container)
        except Exception:
            logger.exception("Error processing segment %r", container)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_container(self, container: Element) -> bool:
        """Tokenize *container* against its current text and commit it.

        Returns:
            False when the segment has no text and was left alone.
        """
        current_text = container.text_content.strip()
        if not current_text:
            return False
        with self.tree.quiet():
            self.wrap_text_in(container)
        self.registry.commit(container, current_text)
        return True

    def wrap_text_in(self, element: Element) -> int:
        """Replace plain word-bearing text under *element* with word elements.

        Leaf elements that hold only text are replaced as a whole; elements
        with nested elements are walked recursively. Existing word elements
        are left untouched, as is text with no words.

        Returns:
            The number of text runs that were rewritten.
        """
        word_class = self.settings.word_class
        rewritten = 0
        for node in list(element.children):
            if isinstance(node, TextNode):
                text = node.data
                if has_words(text):
                    node.replace_with(*render_fragments(text, word_class))
                    rewritten += 1
                continue

            if not isinstance(node, Element) or node.has_class(word_class):
                continue
            if not node.text_content.strip():
                continue
            if node.element_children:
                rewritten += self.wrap_text_in(node)
            elif node.children:
                text = node.text_content
                if has_words(text):
                    node.replace_with(*render_fragments(text, word_class))
                    rewritten += 1
        return rewritten

    def wrap_text_node(self, node: TextNode) -> bool:
        """Tokenize a single loose text node in place."""
        text = node.data
        if node.parent is None or not has_words(text):
            return False
        with self.tree.quiet():
            node.replace_with(*render_fragments(text, self.settings.word_class))
        return True
