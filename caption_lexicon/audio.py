"""Pronunciation audio: process-wide clip cache and play-with-retry.

WHY: Learners replay the same pronunciation many times, and every fetch
is a network round trip. Clips are cached by locator; a cached clip that
stops playing (revoked, corrupt) must not break the button forever, so
it is evicted and fetched again — once.

HOW: AudioCache maps locator → AudioClip. AudioPlayer.play() tries the
cached clip first; on PlaybackError it evicts and falls through to the
fetch path. The fetch path downloads through the AudioFetcher
collaborator, caches the clip, and plays it. A failure there surfaces to
the caller.

RULES:
- Entries are evicted individually on playback failure, never in bulk
- At most one automatic re-fetch per play() call
- Fetch failures raise TransportError; playback failures raise PlaybackError
- A clip that fails right after being fetched is evicted too
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol

from caption_lexicon.errors import PlaybackError

logger = logging.getLogger(__name__)


@dataclass
class AudioClip:
    """A materialized, playable pronunciation clip."""

    locator: str
    data: bytes
    mime_type: str = "audio/mpeg"


class AudioFetcher(Protocol):
    async def fetch_audio(self, locator: str) -> bytes: ...


class AudioSink(Protocol):
    def play(self, clip: AudioClip) -> None: ...


class AudioCache:
    """Locator → AudioClip mapping shared by all playback attempts."""

    def __init__(self) -> None:
        self._clips: Dict[str, AudioClip] = {}

    def __len__(self) -> int:
        return len(self._clips)

    def __contains__(self, locator: str) -> bool:
        return locator in self._clips

    def get(self, locator: str) -> Optional[AudioClip]:
        return self._clips.get(locator)

    def put(self, clip: AudioClip) -> None:
        self._clips[clip.locator] = clip

    def evict(self, locator: str) -> bool:
        return self._clips.pop(locator, None) is not None


class AudioPlayer:
    """Plays pronunciation clips through a sink, fetching and caching them."""

    def __init__(
        self,
        fetcher: AudioFetcher,
        sink: AudioSink,
        cache: Optional[AudioCache] = None,
    ) -> None:
        self.fetcher = fetcher
        self.sink = sink
        self.cache = cache if cache is not None else AudioCache()

    async def play(self, locator: str) -> AudioClip:
        """Play the clip behind *locator*.

        Returns:
            The clip that played.

        Raises:
            TransportError: The clip could not be fetched.
            PlaybackError: The freshly fetched clip could not be played.
        """
        cached = self.cache.get(locator)
        if cached is not None:
            try:
                self.sink.play(cached)
                return cached
            except PlaybackError as exc:
                logger.warning("Cached clip for %s failed (%s); re-fetching", locator, exc)
                self.cache.evict(locator)

        data = await self.fetcher.fetch_audio(locator)
        clip = AudioClip(locator=locator, data=data)
        self.cache.put(clip)
        try:
            self.sink.play(clip)
        except PlaybackError:
            self.cache.evict(locator)
            raise
        return clip


class FileAudioSink:
    """AudioSink that writes each clip to a file in *directory*.

    Used by the CLI, where "playing" means saving the pronunciation next
    to the lookup output.
    """

    def __init__(self, directory: Path, stem: str = "pronunciation") -> None:
        self.directory = Path(directory)
        self.stem = stem
        self.written: list[Path] = []

    def play(self, clip: AudioClip) -> None:
        if not clip.data:
            raise PlaybackError("Audio clip is empty.")
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / "{}-{}.mp3".format(self.stem, len(self.written) + 1)
        try:
            path.write_bytes(clip.data)
        except OSError as exc:
            raise PlaybackError("Could not write audio: {}".format(exc)) from exc
        self.written.append(path)
