"""Package entry point for ``python -m caption_reconciler``.

WHY: Users run the reconciler as ``python -m caption_reconciler events.jsonl``
to replay a recorded capture, or ``python -m caption_reconciler --serve``
for the HTTP API. Python's ``-m`` flag looks for ``__main__.py`` inside
the package and executes it.

HOW: Delegates to the CLI's main(), which selects the mode from its flags.

RULES:
- This file must exist for ``python -m caption_reconciler`` to work
- The ``if __name__`` guard is technically redundant here (Python
  always executes __main__.py as __main__), but included for clarity
"""

if __name__ == "__main__":
    from caption_reconciler.cli import main
    main()
