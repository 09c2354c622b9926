"""apiserver: versioned REST API specifications served behind one router.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, e.g. from apiserver.server import Server
"""
