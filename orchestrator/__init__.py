"""
Publication orchestrator.

Wires processed batches to the collaborators that make them public: the
ledger (batch ids, roots, revocation), content storage (encrypted
packages) and the discovery index (holder lookup).

Public API:
- BatchPublisher: publish, resume, revoke, fetch packages
- ChainClient, ContentStore, DiscoveryIndex: collaborator contracts
- InMemoryLedger: reference ledger with the contract's rules
- PackageVault and content stores (memory, file, Pinata)
- InMemoryDiscoveryIndex
- PublicationIntent and intent logs (memory, file)
"""

from orchestrator.discovery import InMemoryDiscoveryIndex
from orchestrator.intent_log import (
    PUBLICATION_STEPS,
    FileIntentLog,
    InMemoryIntentLog,
    IntentLog,
    PublicationIntent,
    build_intent_log,
)
from orchestrator.ledger import InMemoryLedger
from orchestrator.ports import ChainClient, ChainReader, ContentStore, DiscoveryIndex
from orchestrator.publisher import BatchPublication, BatchPublisher
from orchestrator.storage import (
    FileContentStore,
    InMemoryContentStore,
    PackageVault,
    PinataContentStore,
    build_content_store,
)

__all__ = [
    "BatchPublisher",
    "BatchPublication",
    "ChainReader",
    "ChainClient",
    "ContentStore",
    "DiscoveryIndex",
    "InMemoryLedger",
    "PackageVault",
    "InMemoryContentStore",
    "FileContentStore",
    "PinataContentStore",
    "build_content_store",
    "InMemoryDiscoveryIndex",
    "PublicationIntent",
    "PUBLICATION_STEPS",
    "IntentLog",
    "InMemoryIntentLog",
    "FileIntentLog",
    "build_intent_log",
]
