# src/pm_ledger/domain/gateway.py
"""Ledger gateway Protocols — dependency inversion for testability.

Unit tests inject mocks or the in-memory fake ledger conforming to these
Protocols; infrastructure provides the Aptos implementation.
"""

from typing import Any, Protocol

from src.pm_ledger.domain.models import Bet, EntryCall, KeeperIdentity, Round


class LedgerViewProtocol(Protocol):
    """Read-only contract views. No side effects."""

    async def get_current_round_id(self) -> int: ...

    async def get_round(self, round_id: int) -> Round | None: ...

    async def get_user_bet(self, round_id: int, user: str) -> Bet | None: ...

    async def calculate_potential_payout(self, round_id: int, user: str) -> int: ...

    async def is_initialized(self) -> bool: ...


class LedgerGatewayProtocol(LedgerViewProtocol, Protocol):
    """Views plus the build / submit / confirm primitives used by the submitter."""

    async def build_transaction(self, sender: str, call: EntryCall) -> Any:
        """Build an unsigned transaction against the sender's *current* sequence number."""
        ...

    async def sign_and_submit(self, signer: KeeperIdentity, transaction: Any) -> str:
        """Sign and submit; returns the transaction hash."""
        ...

    async def wait_for_transaction(
        self, transaction_hash: str, timeout_secs: float
    ) -> dict[str, Any]:
        """Block until committed; returns the execution result."""
        ...
