"""Core transcoding engine.

WHY: The core package holds the two halves of a conversion and the
machinery they share. Everything format- or strategy-specific lives in
encodings/; nothing here knows about JSON or the CLI.

HOW: hints.py classifies annotations and builds zero values, fields.py
resolves the visible fields of a record, planner.py builds one encoder
per type that walks values into the arena of ir.py, and
materializer.py writes an arena back into destination slots (slots.py).
cache.py is the publish-once memo behind the process-wide plans.

RULES:
- Plans (field tables, encoders) are pure functions of a type and are
  cached for the life of the process
- The arena is the only per-conversion state
- Structural mismatches are dropped, never raised
"""
