"""Tests for the single-slot request lifecycle.

WHY: Responses arrive in any order. The panel must only ever show the
outcome of the most recent lookup, and nothing after a dismissal.

HOW: ControlledEnricher (conftest) parks every enrich() call on a future;
each test releases the futures in the order it wants to simulate. All
async scenarios run under asyncio.run().
"""

from __future__ import annotations

import asyncio

from caption_lexicon.api.models import LexicalEntry
from caption_lexicon.core.requests import UNEXPECTED_ERROR_MESSAGE, RequestLifecycleManager
from caption_lexicon.errors import ConfigurationError, TransportError
from caption_lexicon.panel import PanelKind, TextPanel

from .conftest import ControlledEnricher


def _make_manager():
    enricher = ControlledEnricher()
    panel = TextPanel()
    return RequestLifecycleManager(enricher, panel), enricher, panel


class TestLoading:

    def test_loading_shown_before_response(self):
        async def scenario():
            manager, enricher, panel = _make_manager()
            task = manager.submit("cats", "I love cats", "origin")
            view = panel.view
            await asyncio.sleep(0)
            enricher.resolve(0, LexicalEntry(query="cats"))
            await task
            return view

        view = asyncio.run(scenario())
        assert view.kind is PanelKind.LOADING
        assert view.title == "Lookup: cats"
        assert view.anchor == "origin"

    def test_text_is_trimmed_before_enrichment(self):
        async def scenario():
            manager, enricher, _ = _make_manager()
            task = manager.submit("  cats ", "I love cats", None)
            await asyncio.sleep(0)
            enricher.resolve(0, LexicalEntry(query="cats"))
            await task
            return enricher.calls

        assert asyncio.run(scenario()) == [("cats", "I love cats")]


class TestStaleResponses:

    def test_older_response_arriving_last_is_dropped(self, sample_entry):
        async def scenario():
            manager, enricher, panel = _make_manager()
            first = manager.submit("love", "I love cats", "w1")
            second = manager.submit("cats", "I love cats", "w2")
            await asyncio.sleep(0)
            enricher.resolve(1, sample_entry)
            await second
            enricher.resolve(0, LexicalEntry(query="love"))
            first_handle = await first
            return panel, first_handle

        panel, first_handle = asyncio.run(scenario())
        assert first_handle.cancelled is True
        assert panel.view.kind is PanelKind.ENTRY
        assert panel.view.entry.query == "cats"
        assert [v.kind for v in panel.history] == [
            PanelKind.LOADING,
            PanelKind.LOADING,
            PanelKind.ENTRY,
        ]

    def test_older_response_arriving_first_is_dropped(self, sample_entry):
        async def scenario():
            manager, enricher, panel = _make_manager()
            first = manager.submit("love", "I love cats", None)
            second = manager.submit("cats", "I love cats", None)
            await asyncio.sleep(0)
            enricher.resolve(0, LexicalEntry(query="love"))
            await first
            loading_still_shown = panel.view.kind is PanelKind.LOADING
            enricher.resolve(1, sample_entry)
            await second
            return panel, loading_still_shown

        panel, loading_still_shown = asyncio.run(scenario())
        assert loading_still_shown is True
        assert panel.view.entry.query == "cats"

    def test_stale_failure_is_dropped(self, sample_entry):
        async def scenario():
            manager, enricher, panel = _make_manager()
            first = manager.submit("love", "I love cats", None)
            second = manager.submit("cats", "I love cats", None)
            await asyncio.sleep(0)
            enricher.fail(0, TransportError("API request failed (500): boom", 500))
            await first
            enricher.resolve(1, sample_entry)
            await second
            return panel

        panel = asyncio.run(scenario())
        assert PanelKind.ERROR not in [v.kind for v in panel.history]


class TestErrors:

    def test_failure_shown_as_message(self):
        async def scenario():
            manager, enricher, panel = _make_manager()
            task = manager.submit("cats", "I love cats", None)
            await asyncio.sleep(0)
            enricher.fail(0, ConfigurationError("Gemini API key not configured."))
            await task
            return manager, panel

        manager, panel = asyncio.run(scenario())
        assert panel.view.kind is PanelKind.ERROR
        assert panel.view.body == "Gemini API key not configured."
        assert manager.current is None

    def test_unexpected_exception_shown_as_generic_message(self):
        async def scenario():
            manager, enricher, panel = _make_manager()
            task = manager.submit("cats", "I love cats", None)
            await asyncio.sleep(0)
            enricher.fail(0, RuntimeError("client not entered"))
            await task
            return manager, panel

        manager, panel = asyncio.run(scenario())
        assert panel.view.kind is PanelKind.ERROR
        assert panel.view.body == UNEXPECTED_ERROR_MESSAGE
        assert manager.current is None

    def test_stale_unexpected_exception_is_dropped(self, sample_entry):
        async def scenario():
            manager, enricher, panel = _make_manager()
            first = manager.submit("cats", "I love cats", None)
            second = manager.submit("dogs", "I love dogs", None)
            await asyncio.sleep(0)
            enricher.fail(0, ValueError("bad payload"))
            await first
            enricher.resolve(1, sample_entry)
            await second
            return panel

        panel = asyncio.run(scenario())
        assert PanelKind.ERROR not in [v.kind for v in panel.history]
        assert panel.view.kind is PanelKind.ENTRY


class TestDismiss:

    def test_dismiss_drops_pending_result(self, sample_entry):
        async def scenario():
            manager, enricher, panel = _make_manager()
            task = manager.submit("cats", "I love cats", None)
            await asyncio.sleep(0)
            manager.dismiss()
            enricher.resolve(0, sample_entry)
            handle = await task
            return panel, handle

        panel, handle = asyncio.run(scenario())
        assert handle.cancelled is True
        assert panel.view is None
        assert [v.kind for v in panel.history] == [PanelKind.LOADING]

    def test_start_request_returns_completed_handle(self, sample_entry):
        async def scenario():
            manager, enricher, panel = _make_manager()
            coro = asyncio.ensure_future(manager.start_request("cats", "I love cats", None))
            await asyncio.sleep(0)
            enricher.resolve(0, sample_entry)
            return await coro, manager

        handle, manager = asyncio.run(scenario())
        assert handle.cancelled is False
        assert manager.current is None
        assert manager.pending_tasks == 0
