"""In-memory host tree and batched mutation feed.

WHY: The engine reacts to a tree of caption nodes owned by someone else.
It needs only a handful of DOM-like operations — class checks, parent
links, text content, ancestor lookup, descendant walks, node replacement
— and a push subscription that delivers structural and text changes in
batches ("ticks"). Modelling exactly that surface keeps the engine free
of any specific renderer and lets tests drive it with synthetic edits.

HOW: Element and TextNode form the tree. Every structural or text edit on
a node attached under a HostTree root appends a MutationRecord to the
tree's pending list. HostTree.flush() hands the pending records to the
MutationFeed as one batch, the way a browser delivers an observer tick.
Edits made inside ``HostTree.quiet()`` are not recorded; the engine uses
this for its own token rewrites so they are not echoed back.

RULES:
- Node identity is object identity (no __eq__/__hash__ overrides), so
  nodes can key a weakref.WeakKeyDictionary
- A node has at most one parent; inserting a node detaches it first
- Records are only produced for nodes attached to a HostTree root
- flush() delivers records in the order the edits happened; subscribers
  must not rely on any order within a batch
"""

from __future__ import annotations

import contextlib
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class MutationKind(str, enum.Enum):
    CHILD_LIST = "childList"
    CHARACTER_DATA = "characterData"


@dataclass(frozen=True)
class MutationRecord:
    """One observed change in the host tree.

    RULES:
    - CHILD_LIST: target is the parent whose children changed; added_nodes
      and removed_nodes list the affected children
    - CHARACTER_DATA: target is the TextNode whose data changed
    """

    kind: MutationKind
    target: "Node"
    added_nodes: Tuple["Node", ...] = ()
    removed_nodes: Tuple["Node", ...] = ()


MutationCallback = Callable[[List[MutationRecord]], None]


class MutationFeed:
    """Push-only subscription channel for mutation batches."""

    def __init__(self) -> None:
        self._subscribers: List[MutationCallback] = []

    def subscribe(self, callback: MutationCallback) -> Callable[[], None]:
        """Register *callback* and return a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, records: Sequence[MutationRecord]) -> None:
        batch = list(records)
        for callback in list(self._subscribers):
            callback(batch)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class Node:
    """Common base for elements and text nodes."""

    def __init__(self) -> None:
        self.parent: Optional[Element] = None

    @property
    def text_content(self) -> str:
        raise NotImplementedError

    @property
    def root(self) -> "Node":
        node: Node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def is_connected(self) -> bool:
        """True when the node is attached under a HostTree root."""
        root = self.root
        return isinstance(root, Element) and root.tree is not None

    def _tree(self) -> Optional["HostTree"]:
        root = self.root
        if isinstance(root, Element):
            return root.tree
        return None

    def closest(self, classes: Iterable[str]) -> Optional["Element"]:
        """Return the nearest element (self included) carrying any of *classes*."""
        wanted = frozenset(classes)
        node: Optional[Node] = self
        while node is not None:
            if isinstance(node, Element) and node.classes & wanted:
                return node
            node = node.parent
        return None

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.remove_child(self)

    def replace_with(self, *nodes: "Node") -> None:
        """Replace this node in its parent with *nodes*, in order."""
        parent = self.parent
        if parent is None:
            return
        for node in nodes:
            node.remove()
        index = parent.children.index(self)
        parent.children[index:index + 1] = list(nodes)
        self.parent = None
        for node in nodes:
            node.parent = parent
        parent._record_child_list(added=nodes, removed=(self,))


class TextNode(Node):
    """A run of character data."""

    def __init__(self, data: str = "") -> None:
        super().__init__()
        self.data = data

    @property
    def text_content(self) -> str:
        return self.data

    def set_data(self, data: str) -> None:
        self.data = data
        tree = self._tree()
        if tree is not None:
            tree.record(MutationRecord(MutationKind.CHARACTER_DATA, self))

    def __repr__(self) -> str:
        return "TextNode({!r})".format(self.data)


class Element(Node):
    """An element with a tag, a class set, and ordered children."""

    def __init__(
        self,
        tag: str = "span",
        classes: Iterable[str] = (),
        children: Iterable[Node] = (),
        text: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.tag = tag
        self.classes = set(classes)
        self.children: List[Node] = []
        self.tree: Optional[HostTree] = None
        for child in children:
            child.remove()
            child.parent = self
            self.children.append(child)
        if text is not None:
            node = TextNode(text)
            node.parent = self
            self.children.append(node)

    def __repr__(self) -> str:
        return "Element({!r}, classes={!r})".format(self.tag, sorted(self.classes))

    # -- classes -------------------------------------------------------

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def has_any_class(self, names: Iterable[str]) -> bool:
        return not self.classes.isdisjoint(names)

    def add_class(self, name: str) -> None:
        self.classes.add(name)

    def remove_class(self, name: str) -> None:
        self.classes.discard(name)

    # -- content -------------------------------------------------------

    @property
    def text_content(self) -> str:
        return "".join(child.text_content for child in self.children)

    @property
    def element_children(self) -> List["Element"]:
        return [c for c in self.children if isinstance(c, Element)]

    def iter_descendants(self) -> Iterator[Node]:
        """Yield every descendant in document (pre-)order, self excluded."""
        for child in list(self.children):
            yield child
            if isinstance(child, Element):
                yield from child.iter_descendants()

    def iter_text_nodes(self) -> Iterator[TextNode]:
        for node in self.iter_descendants():
            if isinstance(node, TextNode):
                yield node

    def query_all(self, classes: Iterable[str]) -> List["Element"]:
        """Return descendants carrying any of *classes*, in document order."""
        wanted = frozenset(classes)
        return [
            node for node in self.iter_descendants()
            if isinstance(node, Element) and node.classes & wanted
        ]

    def contains(self, node: Node) -> bool:
        """True if *node* is this element or one of its descendants."""
        current: Optional[Node] = node
        while current is not None:
            if current is self:
                return True
            current = current.parent
        return False

    # -- structure -----------------------------------------------------

    def append(self, *nodes: Node) -> None:
        for node in nodes:
            node.remove()
            node.parent = self
            self.children.append(node)
        if nodes:
            self._record_child_list(added=nodes, removed=())

    def remove_child(self, node: Node) -> None:
        self.children.remove(node)
        node.parent = None
        self._record_child_list(added=(), removed=(node,))

    def replace_children(self, *nodes: Node) -> None:
        """Swap all children for *nodes* (a host re-render of this element)."""
        removed = tuple(self.children)
        for child in removed:
            child.parent = None
        self.children = []
        for node in nodes:
            node.remove()
            node.parent = self
            self.children.append(node)
        self._record_child_list(added=nodes, removed=removed)

    def set_text(self, text: str) -> None:
        """Replace all children with a single text node."""
        self.replace_children(TextNode(text))

    def _record_child_list(self, added: Sequence[Node], removed: Sequence[Node]) -> None:
        tree = self._tree()
        if tree is not None:
            tree.record(
                MutationRecord(
                    MutationKind.CHILD_LIST,
                    self,
                    added_nodes=tuple(added),
                    removed_nodes=tuple(removed),
                )
            )


class HostTree:
    """The watched document: a root element, pending records, and a feed.

    WHY: Mutation observers deliver changes asynchronously in batches. The
    tree collects records as edits happen and flush() delivers them, so
    tests choose exactly where one tick ends and the next begins.
    """

    def __init__(self, root: Optional[Element] = None) -> None:
        self.root = root or Element("body")
        self.root.tree = self
        self.feed = MutationFeed()
        self._pending: List[MutationRecord] = []
        self._quiet_depth = 0

    def record(self, record: MutationRecord) -> None:
        if self._quiet_depth:
            return
        self._pending.append(record)

    @contextlib.contextmanager
    def quiet(self) -> Iterator[None]:
        """Suppress mutation records for edits made inside the block."""
        self._quiet_depth += 1
        try:
            yield
        finally:
            self._quiet_depth -= 1

    def take_records(self) -> List[MutationRecord]:
        records, self._pending = self._pending, []
        return records

    def flush(self) -> int:
        """Deliver pending records to subscribers as one batch.

        Returns:
            The number of records delivered (0 means nothing was published).
        """
        records = self.take_records()
        if records:
            logger.debug("Delivering %d mutation record(s)", len(records))
            self.feed.publish(records)
        return len(records)
