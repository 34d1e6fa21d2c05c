"""
API package for the calibration database editor backend.

This package provides:
- The command channel route and dispatcher (commands.py)
- Wire models shared with the UI core (schemas.py)
- The canonical dataset store (store/)
- Tree projection building (projection.py)
- Binary symbol loading and merge (symbols.py, merge.py)
- System health and info (system.py)
"""

from .store import CanonicalStore, canonical_store

__all__ = [
    "CanonicalStore",
    "canonical_store",
]
