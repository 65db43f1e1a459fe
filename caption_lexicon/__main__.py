"""Package entry point for ``python -m caption_lexicon``.

WHY: Lets users run the CLI without the installed console script.

HOW: Delegates to caption_lexicon.cli.main().
"""

from caption_lexicon.cli import main

if __name__ == "__main__":
    main()
