"""Infrastructure Layer: logging setup and ASGI middleware.

Invariants:
    - Infrastructure never imports from api/ or server.py
"""
