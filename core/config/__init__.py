"""
Runtime Configuration Module

Provides configuration loading and management for Kirocred.
"""

from .runtime import (
    ChainConfig,
    HttpConfig,
    LoggingConfig,
    PublicationConfig,
    RuntimeConfig,
    StorageConfig,
    VerificationConfig,
)

__all__ = [
    "RuntimeConfig",
    "ChainConfig",
    "StorageConfig",
    "HttpConfig",
    "VerificationConfig",
    "PublicationConfig",
    "LoggingConfig",
]
