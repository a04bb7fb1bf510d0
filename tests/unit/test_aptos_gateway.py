"""Unit tests for AptosLedgerGateway with httpx.MockTransport and a mocked RestClient."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from aptos_sdk.account_address import AccountAddress
from aptos_sdk.async_client import ApiError

from src.pm_common.enums import BetSide
from src.pm_common.errors import (
    ConfirmationTimeoutError,
    LedgerRejectedError,
    LedgerUnavailableError,
)
from src.pm_ledger.domain.models import EntryCall, KeeperIdentity, is_stale_sequence_error
from src.pm_ledger.infrastructure.aptos_gateway import AptosLedgerGateway

NODE = "https://node.example/v1"
MODULE = "0xcafe"
MODULE_LONG = "0x" + "cafe".rjust(64, "0")


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, secs: float) -> None:
        self.now += secs


def _gateway(handler, rest_client=None, clock=None) -> AptosLedgerGateway:
    clock = clock or _Clock()
    return AptosLedgerGateway(
        NODE,
        MODULE,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        rest_client=rest_client or MagicMock(),
        confirm_poll_secs=1.0,
        sleep=clock.sleep,
        clock=clock,
    )


def _view_handler(results: dict[str, httpx.Response], seen: list[dict] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if seen is not None:
            seen.append(body)
        name = body["function"].rsplit("::", 1)[1]
        return results[name]

    return handler


class TestViews:
    @pytest.mark.asyncio
    async def test_current_round_id_request_shape(self):
        seen: list[dict] = []
        gw = _gateway(_view_handler(
            {"get_current_round_id": httpx.Response(200, json=["4"])}, seen
        ))

        assert await gw.get_current_round_id() == 4
        assert seen[0] == {
            "function": f"{MODULE_LONG}::betting::get_current_round_id",
            "type_arguments": [],
            "arguments": [MODULE_LONG],
        }

    @pytest.mark.asyncio
    async def test_get_round_unsettled(self):
        gw = _gateway(_view_handler({"get_round": httpx.Response(200, json=[{
            "start_price": "8123456", "expiry_time_secs": "1700000300",
            "settled": False, "end_price": {"vec": []},
        }])}))

        r = await gw.get_round(3)

        assert r is not None
        assert (r.round_id, r.start_price, r.expiry_time_secs) == (3, 8123456, 1700000300)
        assert r.settled is False
        assert r.end_price is None

    @pytest.mark.asyncio
    async def test_get_round_settled(self):
        gw = _gateway(_view_handler({"get_round": httpx.Response(200, json=[{
            "start_price": "8123456", "expiry_time_secs": "1700000300",
            "settled": True, "end_price": {"vec": ["8500000"]},
        }])}))

        r = await gw.get_round(3)

        assert r.settled is True
        assert r.end_price == 8500000

    @pytest.mark.asyncio
    async def test_get_round_abort_means_missing(self):
        gw = _gateway(_view_handler({"get_round": httpx.Response(
            400, json={"message": "Move abort in 0xcafe::betting: E_ROUND_NOT_FOUND"}
        )}))
        assert await gw.get_round(99) is None

    @pytest.mark.asyncio
    async def test_get_user_bet(self):
        gw = _gateway(_view_handler({"get_user_bet": httpx.Response(200, json=[
            {"amount": "100000000", "side_up": False, "claimed": True}
        ])}))

        bet = await gw.get_user_bet(2, "0xa11ce")

        assert bet.amount == 100000000
        assert bet.side is BetSide.DOWN
        assert bet.claimed is True

    @pytest.mark.asyncio
    async def test_zero_amount_bet_is_none(self):
        gw = _gateway(_view_handler({"get_user_bet": httpx.Response(200, json=[
            {"amount": "0", "side_up": True, "claimed": False}
        ])}))
        assert await gw.get_user_bet(2, "0xa11ce") is None

    @pytest.mark.asyncio
    async def test_potential_payout(self):
        seen: list[dict] = []
        gw = _gateway(_view_handler(
            {"calculate_potential_payout": httpx.Response(200, json=["196000000"])}, seen
        ))

        assert await gw.calculate_potential_payout(2, "0xa11ce") == 196000000
        assert seen[0]["arguments"] == [MODULE_LONG, "2", "0xa11ce"]

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        gw = _gateway(_view_handler({"get_current_round_id": httpx.Response(500, text="boom")}))
        with pytest.raises(LedgerUnavailableError):
            await gw.get_current_round_id()

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(LedgerUnavailableError):
            await _gateway(handler).get_round(1)


class TestIsInitialized:
    @pytest.mark.asyncio
    async def test_resource_present(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json={"type": "0xcafe::betting::State", "data": {}})

        assert await _gateway(handler).is_initialized() is True
        assert seen[0] == f"/v1/accounts/{MODULE_LONG}/resource/{MODULE_LONG}::betting::State"

    @pytest.mark.asyncio
    async def test_resource_missing(self):
        gw = _gateway(lambda request: httpx.Response(404, json={"error_code": "resource_not_found"}))
        assert await gw.is_initialized() is False


class TestTransactions:
    @pytest.mark.asyncio
    async def test_build_uses_current_sender(self):
        rest = MagicMock()
        rest.create_bcs_transaction = AsyncMock(return_value="raw-tx")
        gw = _gateway(lambda r: httpx.Response(500), rest_client=rest)

        raw = await gw.build_transaction("0xbeef", EntryCall("start_round", (8123456, 300)))

        assert raw == "raw-tx"
        sender = rest.create_bcs_transaction.await_args.args[0]
        assert sender == AccountAddress.from_str_relaxed("0xbeef")

    @pytest.mark.asyncio
    async def test_build_with_short_module_address(self):
        rest = MagicMock()
        rest.create_bcs_transaction = AsyncMock(return_value="raw-tx")
        gw = _gateway(lambda r: httpx.Response(500), rest_client=rest)

        await gw.build_transaction("0xbeef", EntryCall("settle", (1, 8500000)))

        payload = rest.create_bcs_transaction.await_args.args[1]
        assert payload.value.module.address == AccountAddress.from_str_relaxed(MODULE)
        assert payload.value.module.name == "betting"
        assert payload.value.function == "settle"

    @pytest.mark.asyncio
    async def test_special_module_address_stays_short(self):
        seen: list[dict] = []
        gw = AptosLedgerGateway(
            NODE,
            "0x1",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(_view_handler(
                {"get_current_round_id": httpx.Response(200, json=["0"])}, seen
            ))),
            rest_client=MagicMock(),
        )

        assert await gw.get_current_round_id() == 0
        assert seen[0]["function"] == "0x1::betting::get_current_round_id"

    @pytest.mark.asyncio
    async def test_build_rejects_wrong_arity(self):
        gw = _gateway(lambda r: httpx.Response(500))
        with pytest.raises(ValueError):
            await gw.build_transaction("0xbeef", EntryCall("settle", (1,)))

    @pytest.mark.asyncio
    async def test_sign_and_submit_records_sequence_number(self):
        rest = MagicMock()
        rest.submit_bcs_transaction = AsyncMock(return_value="0xhash")
        gw = _gateway(lambda r: httpx.Response(500), rest_client=rest)
        keeper = KeeperIdentity(address="0xbeef", credential=MagicMock())
        raw = MagicMock(sequence_number=7)

        assert await gw.sign_and_submit(keeper, raw) == "0xhash"
        assert keeper.last_sequence_number == 7
        keeper.credential.sign_transaction.assert_called_once_with(raw)

    @pytest.mark.asyncio
    async def test_stale_rejection_keeps_signature(self):
        rest = MagicMock()
        rest.submit_bcs_transaction = AsyncMock(
            side_effect=ApiError('{"vm_error_code":3,"message":"SEQUENCE_NUMBER_TOO_OLD"}', 400)
        )
        gw = _gateway(lambda r: httpx.Response(500), rest_client=rest)
        keeper = KeeperIdentity(address="0xbeef", credential=MagicMock())

        with pytest.raises(LedgerRejectedError) as exc_info:
            await gw.sign_and_submit(keeper, MagicMock(sequence_number=3))

        assert is_stale_sequence_error(exc_info.value)


class TestWaitForTransaction:
    @pytest.mark.asyncio
    async def test_polls_until_committed(self):
        responses = iter([
            httpx.Response(404, json={"error_code": "transaction_not_found"}),
            httpx.Response(200, json={"type": "pending_transaction", "hash": "0xh"}),
            httpx.Response(200, json={
                "type": "user_transaction", "success": True,
                "vm_status": "Executed successfully", "version": "42", "gas_used": "9",
            }),
        ])
        clock = _Clock()
        gw = _gateway(lambda request: next(responses), clock=clock)

        result = await gw.wait_for_transaction("0xh", timeout_secs=30)

        assert result == {"success": True, "vm_status": "Executed successfully",
                          "version": "42", "gas_used": "9"}
        assert clock.now == 2.0

    @pytest.mark.asyncio
    async def test_failed_execution_is_rejected(self):
        gw = _gateway(lambda request: httpx.Response(200, json={
            "type": "user_transaction", "success": False,
            "vm_status": "Move abort in 0xcafe::betting: E_ALREADY_SETTLED(0x4)",
        }))

        with pytest.raises(LedgerRejectedError) as exc_info:
            await gw.wait_for_transaction("0xh", timeout_secs=30)

        assert exc_info.value.detail == "Move abort in 0xcafe::betting: E_ALREADY_SETTLED(0x4)"

    @pytest.mark.asyncio
    async def test_times_out(self):
        clock = _Clock()
        gw = _gateway(lambda request: httpx.Response(404, json={}), clock=clock)

        with pytest.raises(ConfirmationTimeoutError):
            await gw.wait_for_transaction("0xh", timeout_secs=3)

        assert clock.now == 3.0
