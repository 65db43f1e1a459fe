"""Caption Lexicon — interactive word lookups over live caption lines.

WHY: Streaming captions are rendered by a third party that rewrites its
text nodes constantly. Learners want to click a word (or drag across a
phrase) and get a dictionary entry for it in context, without the overlay
flickering, duplicating words, or showing a stale answer.

HOW: The core package keeps a token layer in sync with the host tree
(tokenize → reconcile → sweep), maps gestures onto that layer (selection),
and funnels lookups through a single-slot request lifecycle. The api
package talks to the LLM dictionary backend; audio and panel provide the
remaining collaborators.

RULES:
- All engine state lives on an OverlayEngine instance, never in module globals
- Host nodes are never owned by the engine; metadata is weakly keyed
- Only the current request may update the panel
"""

__version__ = "0.1.0"
