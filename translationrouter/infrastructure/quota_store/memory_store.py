"""In-memory quota store implementation.

This is the default QuotaStore. It keeps states for the lifetime of the
process only, which is enough for tests and single-process embedding.

Example:
    ```python
    from translationrouter.infrastructure.quota_store.memory_store import InMemoryQuotaStore

    store = InMemoryQuotaStore()
    await store.save(QuotaState(key_id="deepl-1", used=120, limit=500000))
    state = await store.load("deepl-1")
    ```
"""

import asyncio

from translationrouter.domain.interfaces.quota_store import QuotaStore, QuotaStoreError
from translationrouter.domain.models.quota_state import QuotaState


class InMemoryQuotaStore(QuotaStore):
    """Dictionary-backed QuotaStore.

    Thread Safety:
        - Writes use an asyncio.Lock
        - Reads return copies, so callers never share a mutable state
    """

    def __init__(self) -> None:
        self._states: dict[str, QuotaState] = {}
        self._write_lock = asyncio.Lock()

    async def save(self, state: QuotaState) -> None:
        try:
            async with self._write_lock:
                self._states[state.key_id] = state.model_copy()
        except Exception as e:
            raise QuotaStoreError(f"Failed to save quota state for {state.key_id}: {e}") from e

    async def load(self, key_id: str) -> QuotaState | None:
        state = self._states.get(key_id)
        return state.model_copy() if state is not None else None

    async def load_all(self) -> dict[str, QuotaState]:
        return {key_id: state.model_copy() for key_id, state in self._states.items()}

    async def delete(self, key_id: str) -> None:
        async with self._write_lock:
            self._states.pop(key_id, None)

    def __len__(self) -> int:
        return len(self._states)
