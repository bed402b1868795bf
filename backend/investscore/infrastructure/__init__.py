"""Infrastructure Layer — database sessions, event stores, logging.

Invariants:
    - Implements the Protocols declared in core/repository_protocols.py
    - Never imported by core/
"""
