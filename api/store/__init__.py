"""
Canonical store for the calibration dataset.

``canonical_store`` is the process-wide instance used by the command
dispatcher; tests create their own ``CanonicalStore`` instances.
"""

from .canonical import EMPTY_DATASET, CanonicalStore, to_detail
from .model import Dataset, Module
from .reader import read_dataset
from .writer import write_dataset

canonical_store = CanonicalStore()

__all__ = [
    "EMPTY_DATASET",
    "CanonicalStore",
    "Dataset",
    "Module",
    "canonical_store",
    "read_dataset",
    "to_detail",
    "write_dataset",
]
