"""
Test fixtures package for Kirocred tests.

This package provides factory functions for creating test objects:
- common.py: keys, signed credentials, batches, presentations, FakeChain

Usage:
    from fixtures import make_batch, make_presentation

    def test_something():
        result, issuer, holders = make_batch(size=2)
"""

from .common import (
    BATCH_TIMESTAMP,
    FakeChain,
    make_attributes,
    make_batch,
    make_batch_metadata,
    make_batch_request,
    make_credential_data,
    make_keypair,
    make_presentation,
    make_published_batch,
    run,
)

__all__ = [
    "BATCH_TIMESTAMP",
    "FakeChain",
    "make_attributes",
    "make_batch",
    "make_batch_metadata",
    "make_batch_request",
    "make_credential_data",
    "make_keypair",
    "make_presentation",
    "make_published_batch",
    "run",
]
