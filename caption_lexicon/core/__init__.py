"""Core overlay modules: tokenization, reconciliation, selection, requests.

WHY: The core package holds everything with real invariants — lossless
tokenization, weakly keyed segment records, debounced re-tokenization,
range selection, and single-slot request handling. None of it knows
about HTTP, audio, or how the panel is drawn.

HOW: tokenizer.py is pure; host.py models the watched tree and its
mutation feed; registry.py, reconciler.py and sweeper.py keep the word
layer in sync; selection.py and requests.py turn gestures into lookups;
scheduler.py abstracts timers.

RULES:
- Tokenizer and registry never raise
- All timers go through a Scheduler so tests can use virtual time
- No module-level mutable state
"""
