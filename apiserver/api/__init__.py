"""API Layer: health check, route filtering, router composition and error handlers.

Invariants:
    - Routes registered explicitly from Config specifications (no auto-discovery)
    - All error responses share the ApiServerError JSON envelope
"""
