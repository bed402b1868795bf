"""Core Layer — pure scoring logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic
    - Core never logs; it returns structured results or raises typed errors

Design Decisions:
    - Functional core separated from imperative shell (ADR: impureim sandwich)
"""
