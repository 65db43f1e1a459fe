"""Command-line interface for caption lookups.

WHY: The overlay engine needs a host to run in, but the dictionary
backend, the tokenizer and the API key are worth checking from a
terminal: look a word up in context, verify a key before wiring it into
an overlay, or see how a caption line would be split into words.

HOW: argparse with three subcommands. ``lookup`` runs one enrichment
through GeminiClient and prints the entry (text or JSON), optionally
saving pronunciation audio through AudioPlayer + FileAudioSink.
``check-key`` sends a minimal prompt. ``tokenize`` prints the word and
separator fragments for a line. Async work runs via asyncio.run().

RULES:
- Results go to stdout; status and errors go to stderr
- Exit code 1 on any LexiconError, 130 on Ctrl-C
- --context defaults to the looked-up text itself
- --key overrides GEMINI_API_KEY for this invocation only
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional

from caption_lexicon import __version__
from caption_lexicon.api.client import GeminiClient
from caption_lexicon.audio import AudioPlayer, FileAudioSink
from caption_lexicon.config import TTS_LOCALES, EnvCredentialProvider
from caption_lexicon.core.tokenizer import tokenize
from caption_lexicon.errors import LexiconError
from caption_lexicon.panel import render_entry_text


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


_UNSAFE_STEM_RE = re.compile(r"[^\w'-]+")


def _file_stem(query: str, region: str) -> str:
    """Filename stem for a saved clip; separators and whitespace become "_"."""
    name = _UNSAFE_STEM_RE.sub("_", query).strip("_.") or "audio"
    return "{}-{}".format(name, region)


async def _run_lookup(args: argparse.Namespace) -> None:
    credentials = EnvCredentialProvider(api_key=args.key)
    context = args.context if args.context is not None else args.text

    async with GeminiClient(credentials=credentials, model=args.model) as client:
        _status("Looking up {!r}...".format(args.text))
        entry = await client.enrich(args.text.strip(), context)

        if args.json:
            print(json.dumps(entry.to_dict(), indent=2, ensure_ascii=False))
        else:
            sys.stdout.write(render_entry_text(entry))

        if args.audio:
            phonetic = entry.phonetics.get(args.audio)
            if phonetic is None or not phonetic.audio:
                _status("No {} audio available for {!r}.".format(args.audio.upper(), entry.query))
                return
            sink = FileAudioSink(Path(args.audio_dir), stem=_file_stem(entry.query, args.audio))
            player = AudioPlayer(client, sink)
            await player.play(phonetic.audio)
            for path in sink.written:
                _status("Saved audio to {}".format(path))


async def _run_check_key(args: argparse.Namespace) -> None:
    credentials = EnvCredentialProvider(api_key=args.key)
    async with GeminiClient(credentials=credentials, model=args.model) as client:
        _status("Connecting to Gemini...")
        await client.check_key()
    _status("Connection OK: the API key works.")


def _run_tokenize(args: argparse.Namespace) -> None:
    for fragment in tokenize(args.text):
        print("{:<9} {!r}".format(fragment.kind.value, fragment.text))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable — tests can inspect the parser without running anything.
    """
    parser = argparse.ArgumentParser(
        prog="caption-lexicon",
        description="Look up caption words and phrases in context with an LLM dictionary.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug output to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    lookup = subparsers.add_parser("lookup", help="Look up a word or phrase.")
    lookup.add_argument("text", help="Word or phrase to look up.")
    lookup.add_argument(
        "--context",
        default=None,
        help="Caption line the text appears in (default: the text itself).",
    )
    lookup.add_argument("--json", action="store_true", help="Print the entry as JSON.")
    lookup.add_argument(
        "--audio",
        choices=sorted(TTS_LOCALES),
        default=None,
        help="Also save the pronunciation audio for this regional variant.",
    )
    lookup.add_argument(
        "--audio-dir",
        default=".",
        help="Directory for saved audio (default: current directory).",
    )
    lookup.add_argument("--key", default=None, help="API key (overrides GEMINI_API_KEY).")
    lookup.add_argument("--model", default=None, help="Gemini model name.")

    check = subparsers.add_parser("check-key", help="Verify that the API key works.")
    check.add_argument("--key", default=None, help="API key (overrides GEMINI_API_KEY).")
    check.add_argument("--model", default=None, help="Gemini model name.")

    tok = subparsers.add_parser("tokenize", help="Show how a caption line is split into words.")
    tok.add_argument("text", help="Caption text.")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``caption-lexicon`` console script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "lookup":
            asyncio.run(_run_lookup(args))
        elif args.command == "check-key":
            asyncio.run(_run_check_key(args))
        else:
            _run_tokenize(args)
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except LexiconError as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
