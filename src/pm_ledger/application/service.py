# src/pm_ledger/application/service.py
"""Process-wide ledger singletons: gateway, submitter and keeper identity."""

import logging

from aptos_sdk.account import Account

from config.settings import settings
from src.pm_common.errors import KeeperNotConfiguredError
from src.pm_ledger.application.submitter import TransactionSubmitter
from src.pm_ledger.domain.models import KeeperIdentity
from src.pm_ledger.infrastructure.aptos_gateway import AptosLedgerGateway

logger = logging.getLogger(__name__)

_AIP80_PREFIX = "ed25519-priv-"

_gateway: AptosLedgerGateway | None = None
_submitter: TransactionSubmitter | None = None
_keeper: KeeperIdentity | None = None


def get_ledger_gateway() -> AptosLedgerGateway:
    global _gateway  # noqa: PLW0603
    if _gateway is None:
        _gateway = AptosLedgerGateway(
            settings.APTOS_NODE_URL,
            settings.MODULE_ADDRESS,
            api_key=settings.APTOS_API_KEY,
            confirm_poll_secs=settings.TX_CONFIRM_POLL_SECS,
        )
    return _gateway


def get_submitter() -> TransactionSubmitter:
    global _submitter  # noqa: PLW0603
    if _submitter is None:
        _submitter = TransactionSubmitter(
            get_ledger_gateway(),
            max_attempts=settings.TX_MAX_ATTEMPTS,
            backoff_secs=settings.TX_RETRY_BACKOFF_SECS,
            confirm_timeout_secs=settings.TX_CONFIRM_TIMEOUT_SECS,
        )
    return _submitter


def load_keeper_identity(private_key: str) -> KeeperIdentity:
    """Build the keeper identity from a hex Ed25519 key (optionally AIP-80 prefixed)."""
    key = private_key.strip()
    if not key:
        raise KeeperNotConfiguredError()
    if key.startswith(_AIP80_PREFIX):
        key = key[len(_AIP80_PREFIX):]
    account = Account.load_key(key)
    return KeeperIdentity(address=str(account.address()), credential=account)


def get_keeper_identity() -> KeeperIdentity:
    """FastAPI dependency: fails fast with KeeperNotConfiguredError when no key is set."""
    global _keeper  # noqa: PLW0603
    if _keeper is None:
        _keeper = load_keeper_identity(settings.KEEPER_PRIVATE_KEY)
        logger.info("Keeper identity loaded: %s", _keeper.address)
    return _keeper


async def close_ledger() -> None:
    global _gateway, _submitter  # noqa: PLW0603
    if _gateway is not None:
        await _gateway.aclose()
    _gateway = None
    _submitter = None
