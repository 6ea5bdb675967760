"""Caption Reconciler: live caption deduplication and transcript consolidation.

WHY: Real-time meeting captions arrive as a noisy stream. The same line is
re-read on every poll, ASR rewrites words it already emitted, and partial
lines grow word by word. Copying that stream verbatim produces a transcript
full of duplicates and truncated lines. This package turns the stream into a
clean, monotonically-growing transcript and combines it with chat and
injected comments for export.

HOW: Four-stage pipeline: capture (pluggable adapters polled by an asyncio
recorder), reconcile (per-speaker append/merge/discard decisions), merge
(chronological combination of streams with a duplicate scrub), persist
(session store with a regression guard and a cache fallback). Export goes
through pluggable formatters, the CLI, or the HTTP service.

RULES:
- Reconciliation and merging are synchronous and never await
- All state is owned by explicit instances; there are no module singletons
  in the core
- Adding a new export format = one new formatter module, no core changes
- Persisted text is the stable contract between sessions and resume
"""

__version__ = "0.1.0"
