"""
Pytest configuration and shared fixtures for Kirocred tests.

This conftest.py:
1. Adds project root to sys.path for imports
2. Provides commonly-used fixtures via pytest's autodiscovery
3. Configures pytest markers and settings
"""

import sys
from pathlib import Path

import pytest

# =============================================================================
# Path Setup - Must happen before any local imports
# =============================================================================

# Get the project root (parent of tests/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_TESTS_ROOT = Path(__file__).resolve().parent

# Add both project root and tests root to sys.path
for _path in [str(_PROJECT_ROOT), str(_TESTS_ROOT)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

# =============================================================================
# Import fixtures using importlib (more robust for pytest loading)
# =============================================================================

import importlib

_common = importlib.import_module("fixtures.common")

make_keypair = _common.make_keypair
make_batch = _common.make_batch
make_published_batch = _common.make_published_batch

# Environment variables read by RuntimeConfig
_CONFIG_ENV_VARS = (
    "KIROCRED_RPC_URL", "STARKNET_RPC_URL",
    "KIROCRED_CONTRACT_ADDRESS", "CONTRACT_ADDRESS",
    "KIROCRED_ACCOUNT_ADDRESS", "KIROCRED_CHAIN_STATE",
    "KIROCRED_STORAGE_BACKEND", "KIROCRED_STORAGE_DIR",
    "KIROCRED_PINATA_JWT", "PINATA_JWT",
    "KIROCRED_PINATA_GATEWAY_URL", "PINATA_GATEWAY_URL",
    "KIROCRED_PACKAGE_KEY", "KIROCRED_NONCE_WINDOW",
    "KIROCRED_INTENT_LOG", "KIROCRED_DISCOVERY_PATH",
    "KIROCRED_LOG_LEVEL", "KIROCRED_LOG_FILE",
)


# =============================================================================
# Pytest Fixtures (autodiscovered by pytest)
# =============================================================================

@pytest.fixture
def clean_env(monkeypatch):
    """Remove every configuration env var for the test."""
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def issuer():
    """Provide an issuer keypair."""
    return make_keypair()


@pytest.fixture
def holder():
    """Provide a holder keypair."""
    return make_keypair()


@pytest.fixture
def batch():
    """Provide a processed 3-credential batch: (result, issuer, holders)."""
    return make_batch(3)


@pytest.fixture
def published_batch():
    """Provide (result, stamped packages, chain, issuer, holders) for batch 1."""
    return make_published_batch(3, batch_id=1)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


# =============================================================================
# Test Helpers (available to all tests via fixtures)
# =============================================================================

@pytest.fixture
def assert_check_passed():
    """Helper to assert a specific check passed in a verification report."""
    def _assert(result, check_id: str):
        checks = [c for c in result.checks if c.check_id == check_id]
        assert len(checks) == 1, f"Expected check '{check_id}' not found in {[c.check_id for c in result.checks]}"
        assert checks[0].ok, f"Check '{check_id}' failed: {checks[0].message}"
    return _assert


@pytest.fixture
def assert_check_failed():
    """Helper to assert a specific check failed in a verification report."""
    def _assert(result, check_id: str):
        checks = [c for c in result.checks if c.check_id == check_id]
        assert len(checks) == 1, f"Expected check '{check_id}' not found in {[c.check_id for c in result.checks]}"
        assert not checks[0].ok, f"Check '{check_id}' unexpectedly passed"
    return _assert
