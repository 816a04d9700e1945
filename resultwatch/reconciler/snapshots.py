"""Per-account snapshots of the last observed item set."""

from typing import Protocol

from ..models import ObservedItem


class ISnapshotStore(Protocol):
    """Diff baseline per account. Written once per completed pass."""

    async def get(self, account_id: str) -> list[ObservedItem] | None:
        """Last observed items, or None if the account was never observed."""
        ...

    async def put(self, account_id: str, items: list[ObservedItem]) -> None:
        """Replace the account's snapshot wholesale."""
        ...

    async def clear(self) -> None:
        """Forget every account."""
        ...


class InMemorySnapshotStore:
    """Process-lifetime snapshots. A restart loses the dedup history."""

    def __init__(self, initial: dict[str, list[ObservedItem]] | None = None):
        self._snapshots: dict[str, list[ObservedItem]] = {
            account_id: list(items) for account_id, items in (initial or {}).items()
        }

    async def get(self, account_id: str) -> list[ObservedItem] | None:
        items = self._snapshots.get(account_id)
        return list(items) if items is not None else None

    async def put(self, account_id: str, items: list[ObservedItem]) -> None:
        self._snapshots[account_id] = list(items)

    async def clear(self) -> None:
        self._snapshots.clear()

    def as_dict(self) -> dict[str, list[ObservedItem]]:
        """Copy of every snapshot, for inspection."""
        return {account_id: list(items) for account_id, items in self._snapshots.items()}
