"""OverlayEngine — the single owning context for one caption overlay.

WHY: Selection, the current request, the audio cache and every timer
are stateful. Keeping them on one engine instance (instead of module
globals) gives each overlay a clean lifecycle and lets tests run many
independent engines side by side.

HOW: The engine builds the registry, reconciler, sweeper, selection
controller, request manager and (optionally) the audio player around
the injected host tree and collaborators. start() processes existing
segments, runs one sweep, and starts the periodic sweep. The on_*
methods are the host's input events; they translate gestures into
lookups. teardown() releases every timer and drops any pending result.

RULES:
- start() is idempotent; teardown() is final
- After teardown() every handler is a no-op and no timer does work
- Clicks outside word elements are ignored
- Dismissing the panel cancels the current request and the selection
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from caption_lexicon.audio import AudioCache, AudioClip, AudioFetcher, AudioPlayer, AudioSink
from caption_lexicon.config import EngineSettings
from caption_lexicon.core.host import HostTree, Node
from caption_lexicon.core.reconciler import Reconciler
from caption_lexicon.core.registry import SegmentRegistry
from caption_lexicon.core.requests import Enricher, RequestHandle, RequestLifecycleManager
from caption_lexicon.core.scheduler import LoopScheduler, Scheduler
from caption_lexicon.core.selection import SelectionController
from caption_lexicon.core.sweeper import PeriodicSweeper
from caption_lexicon.panel import PanelRenderer

logger = logging.getLogger(__name__)


class OverlayEngine:
    """Wires the overlay components together and dispatches input events."""

    def __init__(
        self,
        tree: HostTree,
        enricher: Enricher,
        panel: PanelRenderer,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[EngineSettings] = None,
        audio_fetcher: Optional[AudioFetcher] = None,
        audio_sink: Optional[AudioSink] = None,
    ) -> None:
        self.tree = tree
        self.panel = panel
        self.settings = settings or EngineSettings()
        self.scheduler = scheduler or LoopScheduler()

        self.registry = SegmentRegistry(word_class=self.settings.word_class)
        self.reconciler = Reconciler(tree, self.registry, self.scheduler, self.settings)
        self.sweeper = PeriodicSweeper(
            tree, self.registry, self.reconciler, self.scheduler, self.settings
        )
        self.selection = SelectionController(self.settings)
        self.requests = RequestLifecycleManager(enricher, panel)

        self.audio: Optional[AudioPlayer] = None
        if audio_fetcher is not None and audio_sink is not None:
            self.audio = AudioPlayer(audio_fetcher, audio_sink, AudioCache())

        self._started = False
        self._closed = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._started or self._closed:
            return
        self._started = True
        self.reconciler.attach()
        self.sweeper.sweep()
        self.sweeper.start()
        logger.info("Overlay engine started")

    def teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.sweeper.stop()
        self.reconciler.teardown()
        self.selection.clear()
        self.requests.cancel()
        logger.info("Overlay engine torn down")

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------

    def on_key_down(self, key: str) -> None:
        if not self._closed:
            self.selection.key_down(key)

    def on_key_up(self, key: str) -> None:
        if not self._closed:
            self.selection.key_up(key)

    def on_pointer_over(self, node: Optional[Node]) -> None:
        if not self._closed:
            self.selection.pointer_over(node)

    def on_click(self, node: Optional[Node]) -> Optional["asyncio.Task[RequestHandle]"]:
        """Turn a click on a word into a lookup task, or None.

        Must be called from a running event loop (the task is created
        immediately).
        """
        if self._closed:
            return None
        commit = self.selection.click(node)
        if commit is None:
            return None
        return self.requests.submit(commit.text, commit.context, commit.origin)

    def on_close(self) -> None:
        """The user dismissed the panel."""
        if self._closed:
            return
        self.requests.dismiss()
        self.selection.clear()

    async def play_audio(self, locator: str) -> AudioClip:
        """Play a pronunciation clip from the current entry."""
        if self.audio is None:
            raise RuntimeError("OverlayEngine was created without an audio fetcher and sink")
        return await self.audio.play(locator)
