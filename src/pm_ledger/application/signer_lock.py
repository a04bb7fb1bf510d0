"""Per-signer single-flight locks for ledger-mutating calls.

Two submissions from the same account race on its sequence number; holding
the signer's lock for a whole operation keeps the stale-sequence retry path
a fallback instead of the normal case. Locks are in-process only; run one
keeper process per signing key.
"""

import asyncio
from collections import defaultdict


class SignerLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_signer(self, address: str) -> asyncio.Lock:
        return self._locks[address.lower()]


_signer_locks: SignerLocks | None = None


def get_signer_locks() -> SignerLocks:
    global _signer_locks  # noqa: PLW0603
    if _signer_locks is None:
        _signer_locks = SignerLocks()
    return _signer_locks
