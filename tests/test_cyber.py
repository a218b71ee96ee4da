"""
Tests for the target-chain REST client.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from vesting_relayer.cyber import CyberClient
from vesting_relayer.errors import ChainRejectionError, TransportError, ValidationError

ADDRESS = "cyber1w508d6qejxtdg4y5r3zarvary0c5xw7kaksjxz"
PUBKEY = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
TX_HASH = "C0FFEE" * 10 + "ABCD"


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> CyberClient:
    return CyberClient(
        base_url="http://cyber.test/",
        chain_id="test-1",
        confirmation_delay=0,
        confirmation_interval=0,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestGetAccountState:

    @pytest.mark.asyncio
    async def test_wrapped_response(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={"result": {"account": {"account_number": "7", "sequence": "2", "address": ADDRESS}}},
            )

        client = _client(handler)
        state = await client.get_account_state(ADDRESS, PUBKEY)

        assert state.account_number == 7
        assert state.sequence == 2
        assert state.chain_id == "test-1"
        assert state.address == ADDRESS
        assert state.public_key_hex == PUBKEY
        assert requests[0].url.path == "/api/account"
        assert requests[0].url.params["address"] == f'"{ADDRESS}"'

    @pytest.mark.asyncio
    async def test_flat_response(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"account_number": 3, "sequence": 0}))
        state = await client.get_account_state(ADDRESS, PUBKEY)
        assert (state.account_number, state.sequence) == (3, 0)

    @pytest.mark.asyncio
    async def test_typed_value_response(self) -> None:
        body = {"result": {"type": "cosmos-sdk/Account", "value": {"account_number": "9", "sequence": "4"}}}
        client = _client(lambda r: httpx.Response(200, json=body))
        state = await client.get_account_state(ADDRESS, PUBKEY)
        assert (state.account_number, state.sequence) == (9, 4)

    @pytest.mark.asyncio
    async def test_missing_sequence_is_validation_error(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"result": {"account": {"account_number": "7"}}}))
        with pytest.raises(ValidationError, match="sequence"):
            await client.get_account_state(ADDRESS, PUBKEY)

    @pytest.mark.asyncio
    async def test_empty_result_is_validation_error(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"result": None}))
        with pytest.raises(ValidationError):
            await client.get_account_state(ADDRESS, PUBKEY)

    @pytest.mark.asyncio
    async def test_http_error_is_transport_error(self) -> None:
        client = _client(lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(TransportError):
            await client.get_account_state(ADDRESS, PUBKEY)

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(TransportError, match="connection refused"):
            await client.get_account_state(ADDRESS, PUBKEY)

    @pytest.mark.asyncio
    async def test_missing_chain_id(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"account_number": 3, "sequence": 0}))
        client.chain_id = ""
        with pytest.raises(ValidationError, match="chain id"):
            await client.get_account_state(ADDRESS, PUBKEY)


class TestSubmit:

    @pytest.mark.asyncio
    async def test_sync_mode_body(self) -> None:
        bodies: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"txhash": TX_HASH})

        client = _client(handler)
        signed = {"type": "auth/StdTx", "value": {"msg": [], "memo": "m"}}

        result = await client.submit(signed)

        assert result.tx_hash == TX_HASH
        assert result.accepted
        assert bodies == [{"tx": {"msg": [], "memo": "m"}, "mode": "sync"}]

    @pytest.mark.asyncio
    async def test_nonzero_code_rejected(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"txhash": TX_HASH, "code": 5, "raw_log": "insufficient funds"}))

        with pytest.raises(ChainRejectionError) as excinfo:
            await client.submit({"value": {}})

        assert excinfo.value.code == 5
        assert excinfo.value.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_broadcast_returns_code_without_raising(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"txhash": TX_HASH, "code": 4}))
        result = await client.broadcast({"value": {}})
        assert result.result_code == 4
        assert not result.accepted

    @pytest.mark.asyncio
    async def test_error_body_rejected(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"error": "signature verification failed"}))
        with pytest.raises(ChainRejectionError, match="signature verification failed"):
            await client.submit({"value": {}})


class TestWaitForCommit:

    @pytest.mark.asyncio
    async def test_single_check_after_delay(self, monkeypatch: pytest.MonkeyPatch) -> None:
        sleeps: list[float] = []
        calls: list[str] = []

        async def fake_sleep(delay: float) -> None:
            sleeps.append(delay)

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, json={"txhash": TX_HASH, "height": "10"})

        monkeypatch.setattr("vesting_relayer.cyber.asyncio.sleep", fake_sleep)
        client = _client(handler)
        client.confirmation_delay = 21

        result = await client.wait_for_commit(TX_HASH)

        assert sleeps == [21]
        assert calls == [f"/lcd/txs/{TX_HASH}"]
        assert result.committed
        assert result.payload["height"] == "10"

    @pytest.mark.asyncio
    async def test_single_shot_does_not_retry(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(404, json={"error": "not found"})

        client = _client(handler)
        with pytest.raises(TransportError):
            await client.wait_for_commit(TX_HASH)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_bounded_poll(self) -> None:
        responses = [
            httpx.Response(404, json={"error": "not found"}),
            httpx.Response(404, json={"error": "not found"}),
            httpx.Response(200, json={"txhash": TX_HASH, "code": 0}),
        ]
        client = _client(lambda r: responses.pop(0), confirmation_attempts=3)

        result = await client.wait_for_commit(TX_HASH)

        assert result.committed
        assert responses == []

    @pytest.mark.asyncio
    async def test_committed_with_error_code(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"txhash": TX_HASH, "code": 11}))
        with pytest.raises(ChainRejectionError) as excinfo:
            await client.wait_for_commit(TX_HASH)
        assert excinfo.value.code == 11

    @pytest.mark.asyncio
    async def test_bounded_poll_gives_up_after_last_attempt(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(404, json={"error": "not found"})

        client = _client(handler, confirmation_attempts=3)
        with pytest.raises(TransportError):
            await client.wait_for_commit(TX_HASH)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_error_code_after_poll_is_not_retried(self) -> None:
        responses = [
            httpx.Response(404, json={"error": "not found"}),
            httpx.Response(200, json={"txhash": TX_HASH, "code": 5}),
        ]
        client = _client(lambda r: responses.pop(0), confirmation_attempts=3)

        with pytest.raises(ChainRejectionError) as excinfo:
            await client.wait_for_commit(TX_HASH)
        assert excinfo.value.code == 5
        assert excinfo.value.tx_hash == TX_HASH
        assert responses == []
