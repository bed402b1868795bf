"""Services Layer — calculation runner, replay verifier, audit reads.

Invariants:
    - Services receive their EventEmitter / EventStore by injection
    - Services log; the pure scoring core they call never does
"""
