"""
Rollout History Port

Architectural Intent:
- Read/write contract for finished rollout records
- Lets the controller find the last known-good reference for a host
- Implemented by SQLiteRepository
"""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class RolloutHistoryPort(Protocol):
    def record_rollout(self, record: dict[str, Any]) -> int: ...

    def last_good_reference(self, host: str) -> Optional[str]: ...

    def get_rollout_history(
        self, host: Optional[str] = None, limit: int = 50
    ) -> list[dict[str, Any]]: ...
