"""AptosLedgerGateway — concrete implementation of LedgerGatewayProtocol.

View functions and confirmation polling go straight to the fullnode REST API
over httpx; transaction building, BCS encoding and Ed25519 signing use the
aptos-sdk RestClient.

View conventions of the ``betting`` module (first argument is always the
module address holding the State resource):
  get_current_round_id(addr)                  -> [u64]           0 = no round yet
  get_round(addr, round_id)                   -> [{start_price, expiry_time_secs,
                                                   settled, end_price: Option<u64>}]
  get_user_bet(addr, round_id, user)          -> [{amount, side_up, claimed}]
  calculate_potential_payout(addr, round_id, user) -> [u64]
A Move abort on get_round / get_user_bet means "no such round / bet".
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from aptos_sdk.account_address import AccountAddress
from aptos_sdk.async_client import ApiError, RestClient
from aptos_sdk.bcs import Serializer
from aptos_sdk.transactions import (
    EntryFunction,
    SignedTransaction,
    TransactionArgument,
    TransactionPayload,
)

from src.pm_common.enums import BetSide
from src.pm_common.errors import (
    ConfirmationTimeoutError,
    LedgerRejectedError,
    LedgerUnavailableError,
)
from src.pm_ledger.domain.models import Bet, EntryCall, KeeperIdentity, Round

logger = logging.getLogger(__name__)

MODULE_NAME = "betting"

# Move parameter types of each entry point, in order
_ENTRY_ARGUMENT_TYPES: dict[str, tuple[str, ...]] = {
    "init": ("address", "u64", "address"),
    "start_round": ("u64", "u64"),
    "settle": ("u64", "u64"),
    "claim": ("u64", "address"),
}


def _encode_argument(move_type: str, value: int | str) -> TransactionArgument:
    if move_type == "u64":
        return TransactionArgument(int(value), Serializer.u64)
    if move_type == "address":
        return TransactionArgument(AccountAddress.from_str_relaxed(str(value)), Serializer.struct)
    raise ValueError(f"Unsupported Move argument type: {move_type}")


def _as_int(raw: Any) -> int:
    return int(raw)


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.lower() == "true"
    return bool(raw)


def _as_optional_u64(raw: Any) -> int | None:
    # Option<u64> serializes as {"vec": []} or {"vec": ["123"]}
    if isinstance(raw, dict):
        vec = raw.get("vec") or []
        return int(vec[0]) if vec else None
    if raw is None:
        return None
    return int(raw)


def _is_move_abort(response: httpx.Response) -> bool:
    return response.status_code == 400 and "abort" in response.text.lower()


class AptosLedgerGateway:
    def __init__(
        self,
        node_url: str,
        module_address: str,
        api_key: str = "",
        http_client: httpx.AsyncClient | None = None,
        rest_client: RestClient | None = None,
        confirm_poll_secs: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._node_url = node_url.rstrip("/")
        # Long form for ordinary addresses; EntryFunction module ids reject short hex
        self._module_address = str(AccountAddress.from_str_relaxed(module_address))
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._http = http_client or httpx.AsyncClient(timeout=10.0, headers=headers)
        if rest_client is None:
            rest_client = RestClient(self._node_url)
            if api_key:
                rest_client.client.headers["Authorization"] = f"Bearer {api_key}"
        self._rest = rest_client
        self._confirm_poll_secs = confirm_poll_secs
        self._sleep = sleep
        self._clock = clock

    def _function_id(self, name: str) -> str:
        return f"{self._module_address}::{MODULE_NAME}::{name}"

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def _post_view(self, name: str, arguments: list[str]) -> httpx.Response:
        body = {
            "function": self._function_id(name),
            "type_arguments": [],
            "arguments": [self._module_address, *arguments],
        }
        try:
            return await self._http.post(f"{self._node_url}/view", json=body)
        except httpx.HTTPError as exc:
            raise LedgerUnavailableError(f"{name}: {exc}") from exc

    async def _view(self, name: str, arguments: list[str]) -> list[Any]:
        response = await self._post_view(name, arguments)
        if response.is_error:
            raise LedgerUnavailableError(f"{name}: HTTP {response.status_code} {response.text}")
        return list(response.json())

    async def get_current_round_id(self) -> int:
        values = await self._view("get_current_round_id", [])
        return _as_int(values[0])

    async def get_round(self, round_id: int) -> Round | None:
        response = await self._post_view("get_round", [str(round_id)])
        if _is_move_abort(response):
            return None
        if response.is_error:
            raise LedgerUnavailableError(
                f"get_round: HTTP {response.status_code} {response.text}"
            )
        data = response.json()[0]
        return Round(
            round_id=round_id,
            start_price=_as_int(data["start_price"]),
            expiry_time_secs=_as_int(data["expiry_time_secs"]),
            settled=_as_bool(data["settled"]),
            end_price=_as_optional_u64(data.get("end_price")),
        )

    async def get_user_bet(self, round_id: int, user: str) -> Bet | None:
        response = await self._post_view("get_user_bet", [str(round_id), user])
        if _is_move_abort(response):
            return None
        if response.is_error:
            raise LedgerUnavailableError(
                f"get_user_bet: HTTP {response.status_code} {response.text}"
            )
        data = response.json()[0]
        amount = _as_int(data["amount"])
        if amount == 0:
            return None
        return Bet(
            round_id=round_id,
            user=user,
            amount=amount,
            side=BetSide.UP if _as_bool(data["side_up"]) else BetSide.DOWN,
            claimed=_as_bool(data["claimed"]),
        )

    async def calculate_potential_payout(self, round_id: int, user: str) -> int:
        values = await self._view("calculate_potential_payout", [str(round_id), user])
        return _as_int(values[0])

    async def is_initialized(self) -> bool:
        resource_type = f"{self._module_address}::{MODULE_NAME}::State"
        url = f"{self._node_url}/accounts/{self._module_address}/resource/{resource_type}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as exc:
            raise LedgerUnavailableError(f"State resource: {exc}") from exc
        if response.status_code == 404:
            return False
        if response.is_error:
            raise LedgerUnavailableError(
                f"State resource: HTTP {response.status_code} {response.text}"
            )
        return True

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def build_transaction(self, sender: str, call: EntryCall) -> Any:
        move_types = _ENTRY_ARGUMENT_TYPES[call.function]
        if len(move_types) != len(call.arguments):
            raise ValueError(
                f"{call.function} takes {len(move_types)} arguments, got {len(call.arguments)}"
            )
        payload = TransactionPayload(
            EntryFunction.natural(
                f"{self._module_address}::{MODULE_NAME}",
                call.function,
                [],
                [_encode_argument(t, v) for t, v in zip(move_types, call.arguments)],
            )
        )
        try:
            # Reads the sender's current on-chain sequence number on every build
            return await self._rest.create_bcs_transaction(
                AccountAddress.from_str_relaxed(sender), payload
            )
        except (ApiError, httpx.HTTPError) as exc:
            raise LedgerUnavailableError(f"build {call.function}: {exc}") from exc

    async def sign_and_submit(self, signer: KeeperIdentity, transaction: Any) -> str:
        signer.observe_sequence_number(transaction.sequence_number)
        authenticator = signer.credential.sign_transaction(transaction)
        signed = SignedTransaction(transaction, authenticator)
        try:
            return await self._rest.submit_bcs_transaction(signed)
        except ApiError as exc:
            raise LedgerRejectedError(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise LedgerUnavailableError(f"submit: {exc}") from exc

    async def wait_for_transaction(
        self, transaction_hash: str, timeout_secs: float
    ) -> dict[str, Any]:
        url = f"{self._node_url}/transactions/by_hash/{transaction_hash}"
        deadline = self._clock() + timeout_secs
        while True:
            try:
                response = await self._http.get(url)
            except httpx.HTTPError as exc:
                raise LedgerUnavailableError(f"confirm {transaction_hash}: {exc}") from exc

            if response.status_code == 200:
                body = response.json()
                if body.get("type") != "pending_transaction":
                    result = {
                        "success": bool(body.get("success")),
                        "vm_status": body.get("vm_status"),
                        "version": body.get("version"),
                        "gas_used": body.get("gas_used"),
                    }
                    if not result["success"]:
                        raise LedgerRejectedError(str(result["vm_status"]))
                    return result
            elif response.status_code != 404:
                raise LedgerUnavailableError(
                    f"confirm {transaction_hash}: HTTP {response.status_code} {response.text}"
                )

            if self._clock() >= deadline:
                raise ConfirmationTimeoutError(transaction_hash, timeout_secs)
            await self._sleep(self._confirm_poll_secs)

    async def aclose(self) -> None:
        await self._http.aclose()
        await self._rest.close()
