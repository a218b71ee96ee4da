"""
Tests for unsigned transaction construction.
"""

from decimal import Decimal

import pytest

from vesting_relayer.errors import ValidationError
from vesting_relayer.models import AccountState
from vesting_relayer.tx import build_send_tx, format_amount

RECIPIENT = "cyber1w508d6qejxtdg4y5r3zarvary0c5xw7kaksjxz"


class TestBuildSendTx:

    def test_structure(self, account_state: AccountState) -> None:
        tx = build_send_tx(account_state, RECIPIENT, 1000, "eul", "Claim #5")

        assert tx["type"] == "auth/StdTx"
        value = tx["value"]
        assert value["memo"] == "Claim #5"
        assert value["msg"] == [
            {
                "type": "cosmos-sdk/MsgSend",
                "value": {
                    "amount": [{"amount": "1000", "denom": "eul"}],
                    "from_address": account_state.address,
                    "to_address": RECIPIENT,
                },
            }
        ]
        assert value["signatures"] == [
            {
                "signature": "N/A",
                "account_number": "7",
                "sequence": "2",
                "pub_key": {"type": "tendermint/PubKeySecp256k1", "value": "PK"},
            }
        ]

    def test_zero_fee_by_default(self, account_state: AccountState) -> None:
        tx = build_send_tx(account_state, RECIPIENT, 1, "eul", "")
        assert tx["value"]["fee"] == {"amount": [{"amount": "0", "denom": "eul"}], "gas": "0"}

    def test_configured_fee(self, account_state: AccountState) -> None:
        tx = build_send_tx(account_state, RECIPIENT, 1, "eul", "", fee_amount=2500, gas=200_000)
        assert tx["value"]["fee"] == {"amount": [{"amount": "2500", "denom": "eul"}], "gas": "200000"}

    def test_large_amount_keeps_precision(self, account_state: AccountState) -> None:
        amount = 10**30 + 1
        tx = build_send_tx(account_state, RECIPIENT, amount, "eul", "")
        assert tx["value"]["msg"][0]["value"]["amount"][0]["amount"] == "1000000000000000000000000000001"

    def test_missing_sequence_raises(self, account_state: AccountState) -> None:
        account_state.sequence = None  # type: ignore[assignment]
        with pytest.raises(ValidationError, match="sequence"):
            build_send_tx(account_state, RECIPIENT, 1, "eul", "")

    def test_missing_account_number_raises(self, account_state: AccountState) -> None:
        account_state.account_number = None  # type: ignore[assignment]
        with pytest.raises(ValidationError, match="account number"):
            build_send_tx(account_state, RECIPIENT, 1, "eul", "")

    def test_missing_account_raises(self) -> None:
        with pytest.raises(ValidationError, match="not defined"):
            build_send_tx(None, RECIPIENT, 1, "eul", "")  # type: ignore[arg-type]

    def test_empty_recipient_raises(self, account_state: AccountState) -> None:
        with pytest.raises(ValidationError, match="recipient"):
            build_send_tx(account_state, "", 1, "eul", "")


class TestFormatAmount:

    def test_int_and_string(self) -> None:
        assert format_amount(1000) == "1000"
        assert format_amount("1000") == "1000"
        assert format_amount(Decimal("1000")) == "1000"

    def test_float_rejected(self) -> None:
        with pytest.raises(ValidationError, match="integer"):
            format_amount(0.1)  # type: ignore[arg-type]

    def test_fraction_rejected(self) -> None:
        with pytest.raises(ValidationError, match="whole number"):
            format_amount("1.5")

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValidationError, match="negative"):
            format_amount(-1)

    def test_garbage_rejected(self) -> None:
        with pytest.raises(ValidationError, match="not a number"):
            format_amount("abc")
