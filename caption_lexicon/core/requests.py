"""Single-slot lifecycle for dictionary lookups.

WHY: A learner can click word after word faster than the backend
answers. Whatever the network does, the panel must only ever show the
answer to the most recent lookup — a late response for an older click
must never overwrite the view for a newer one, and nothing may appear
after the panel was dismissed.

HOW: Each lookup gets a RequestHandle and becomes the manager's single
"current" handle; the previous handle is marked cancelled. The lookup
awaits the enrichment collaborator, then checks whether its handle is
still current and not cancelled before touching the panel. Cancellation
is advisory: the network call is never aborted, its result is ignored.

RULES:
- At most one current handle per manager
- A result is applied at most once, and only for the current handle
- Loading is shown immediately; replaced by the entry or an error
- LexiconError → short message on the panel, handle cleared
- Any other exception → logged with traceback, generic message shown
- Stale results (success or failure) are dropped silently
- dismiss() cancels the current handle and closes the panel
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Set

from caption_lexicon.api.models import LexicalEntry
from caption_lexicon.errors import LexiconError
from caption_lexicon.panel import PanelRenderer

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Lookup failed. Please try again."


class Enricher(Protocol):
    async def enrich(self, text: str, context: str) -> LexicalEntry: ...


@dataclass
class RequestHandle:
    """Identity of one lookup; ``cancelled`` is checked when it completes."""

    id: int
    text: str
    cancelled: bool = False


class RequestLifecycleManager:
    """Issues lookups and applies only the current one's outcome."""

    def __init__(self, enricher: Enricher, panel: PanelRenderer) -> None:
        self.enricher = enricher
        self.panel = panel
        self._current: Optional[RequestHandle] = None
        self._ids = itertools.count(1)
        self._tasks: Set["asyncio.Task[RequestHandle]"] = set()

    @property
    def current(self) -> Optional[RequestHandle]:
        return self._current

    def is_current(self, handle: RequestHandle) -> bool:
        return self._current is handle and not handle.cancelled

    def cancel(self) -> Optional[RequestHandle]:
        """Mark the current handle cancelled and clear the slot."""
        handle = self._current
        if handle is not None:
            handle.cancelled = True
            self._current = None
            logger.debug("Cancelled request %d (%r)", handle.id, handle.text)
        return handle

    def dismiss(self) -> None:
        """Panel closed by the user: drop any pending result and close."""
        self.cancel()
        self.panel.close()

    def begin(self, text: str, origin: Any) -> RequestHandle:
        """Supersede the current lookup and show loading for a new one."""
        self.cancel()
        handle = RequestHandle(id=next(self._ids), text=text)
        self._current = handle
        self.panel.show_loading(text, origin)
        logger.info("Request %d started for %r", handle.id, text)
        return handle

    async def complete(
        self, handle: RequestHandle, context: str, origin: Any
    ) -> RequestHandle:
        """Await the enrichment for *handle* and apply it if still current."""
        try:
            entry = await self.enricher.enrich(handle.text.strip(), context)
        except LexiconError as exc:
            if not self.is_current(handle):
                logger.debug("Dropping stale failure for request %d", handle.id)
                return handle
            logger.warning("Request %d failed: %s", handle.id, exc)
            self.panel.show_error(str(exc), origin)
            self._current = None
            return handle
        except Exception:
            if not self.is_current(handle):
                logger.debug("Dropping stale failure for request %d", handle.id)
                return handle
            logger.exception("Request %d failed unexpectedly", handle.id)
            self.panel.show_error(UNEXPECTED_ERROR_MESSAGE, origin)
            self._current = None
            return handle

        if not self.is_current(handle):
            logger.debug("Dropping stale response for request %d", handle.id)
            return handle

        self.panel.show_entry(entry, origin)
        self._current = None
        return handle

    async def start_request(self, text: str, context: str, origin: Any) -> RequestHandle:
        """Run one lookup to completion, superseding any earlier one.

        Args:
            text: Word or phrase to look up.
            context: Caption line the selection came from.
            origin: Anchor passed through to the panel (the clicked word).

        Returns:
            The handle of this lookup; ``cancelled`` tells callers whether
            its outcome was dropped.
        """
        handle = self.begin(text, origin)
        return await self.complete(handle, context, origin)

    def submit(self, text: str, context: str, origin: Any) -> "asyncio.Task[RequestHandle]":
        """Start a lookup from a synchronous event handler.

        The previous lookup is superseded and loading is shown before this
        returns; only the wait for the backend runs in the task. Must be
        called with a running event loop.
        """
        handle = self.begin(text, origin)
        task = asyncio.ensure_future(self.complete(handle, context, origin))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)
