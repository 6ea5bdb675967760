"""Core reconciliation modules.

WHY: The core package contains the stable heart of the reconciler: the
line IR, the similarity decisions and the per-speaker engine. Storage,
capture and export layers all consume it and must not leak into it.

HOW: ir.py and timestamps.py define the data structures, text.py and
similarity.py the pure comparison helpers, engine.py the per-fragment
state machine, merger.py the chronological combined export and
session.py the persisted Session model and its identifiers.

RULES:
- IR dataclasses and rendered line formats are the persisted contract
- Nothing here performs I/O or awaits
- No module-level mutable state; engines are constructed by callers
"""
