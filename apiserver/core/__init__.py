"""Core Layer: pure configuration logic, no IO, no listener.

Invariants:
    - No module in core/ imports from api/, infrastructure/ or server.py
    - Everything here is usable without an event loop
"""
