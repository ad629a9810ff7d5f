"""QuotaStore interface for persisting ledger state across restarts.

No storage engine is mandated. The one property every implementation must
preserve is that a restored QuotaState never reports more *available* quota
than was authoritatively true at its last reconciliation; the QuotaLedger
guarantees this by only ever handing stores a conservative ``used`` value.

Example:
    ```python
    from translationrouter.infrastructure.quota_store.memory_store import InMemoryQuotaStore

    store: QuotaStore = InMemoryQuotaStore()
    await store.save(QuotaState(key_id="deepl-1", used=120, limit=500000))
    state = await store.load("deepl-1")
    ```
"""

from abc import ABC, abstractmethod

from translationrouter.domain.models.quota_state import QuotaState


class QuotaStoreError(Exception):
    """Raised when quota store operations fail."""

    pass


class QuotaStore(ABC):
    """Abstract interface for quota state persistence."""

    @abstractmethod
    async def save(self, state: QuotaState) -> None:
        """Persist ``state`` (upsert by key_id).

        Raises:
            QuotaStoreError: If save operation fails.
        """
        pass

    @abstractmethod
    async def load(self, key_id: str) -> QuotaState | None:
        """Load the persisted state for ``key_id``, or None.

        Raises:
            QuotaStoreError: If load operation fails.
        """
        pass

    @abstractmethod
    async def load_all(self) -> dict[str, QuotaState]:
        """Load every persisted state keyed by key_id.

        Raises:
            QuotaStoreError: If load operation fails.
        """
        pass

    @abstractmethod
    async def delete(self, key_id: str) -> None:
        """Forget the persisted state for ``key_id`` (no-op when absent).

        Raises:
            QuotaStoreError: If delete operation fails.
        """
        pass
