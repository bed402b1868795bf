"""API Layer — FastAPI routes and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Routes hold no scoring logic; they convert schemas and delegate to services
"""
