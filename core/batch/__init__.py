"""
Batch processing: issue N credentials, build one tree, emit N packages.
"""
from .processor import process_batch, verify_batch_result

__all__ = [
    "process_batch",
    "verify_batch_result",
]
