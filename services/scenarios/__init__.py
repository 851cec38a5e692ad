"""Scenario persistence: immutable input/result records with server-side recomputation."""
