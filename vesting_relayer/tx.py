"""
Unsigned transfer transaction construction (amino JSON StdTx).
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .models import AccountState

STD_TX_TYPE = "auth/StdTx"
MSG_SEND_TYPE = "cosmos-sdk/MsgSend"
PUBKEY_TYPE = "tendermint/PubKeySecp256k1"

# Placeholder values carried until the signing engine fills the slot
SIGNATURE_PLACEHOLDER = "N/A"
PUBKEY_PLACEHOLDER = "PK"


def _require_sequencing(account: AccountState | None) -> AccountState:
    if account is None:
        raise ValidationError("account state is not defined")
    if account.account_number is None:
        raise ValidationError("account state does not contain the account number")
    if account.sequence is None:
        raise ValidationError("account state does not contain the sequence value")
    return account


def format_amount(amount: int | str | Decimal) -> str:
    """
    Render a token amount as an integer string.

    Floats are refused: a claim amount must never pass through binary
    floating point.
    """
    if isinstance(amount, bool) or isinstance(amount, float):
        raise ValidationError(f"amount must be an integer, got {type(amount).__name__}")
    if isinstance(amount, int):
        value = amount
    else:
        try:
            dec = Decimal(str(amount))
        except InvalidOperation as e:
            raise ValidationError(f"amount {amount!r} is not a number") from e
        if dec != dec.to_integral_value():
            raise ValidationError(f"amount {amount} is not a whole number of base units")
        value = int(dec)
    if value < 0:
        raise ValidationError(f"amount must not be negative: {value}")
    return str(value)


def create_skeleton(account: AccountState, memo: str) -> dict[str, Any]:
    """StdTx shell with an empty message list and a placeholder signature."""
    account = _require_sequencing(account)
    return {
        "type": STD_TX_TYPE,
        "value": {
            "msg": [],
            "fee": None,
            "memo": memo,
            "signatures": [
                {
                    "signature": SIGNATURE_PLACEHOLDER,
                    "account_number": str(account.account_number),
                    "sequence": str(account.sequence),
                    "pub_key": {
                        "type": PUBKEY_TYPE,
                        "value": PUBKEY_PLACEHOLDER,
                    },
                }
            ],
        },
    }


def apply_fee(unsigned_tx: dict[str, Any], fee_amount: int, gas: int, denom: str) -> dict[str, Any]:
    """
    Set the fee object on an unsigned transaction.

    The default policy charges zero fee. Chains that enforce a minimum gas
    price will reject such transactions until a fee is configured.
    """
    if gas is None:
        raise ValidationError("gas is not defined")
    unsigned_tx["value"]["fee"] = {
        "amount": [
            {
                "amount": format_amount(fee_amount),
                "denom": denom,
            }
        ],
        "gas": str(gas),
    }
    return unsigned_tx


def create_send_msg(sender: str, recipient: str, amount: int | str, denom: str) -> dict[str, Any]:
    return {
        "type": MSG_SEND_TYPE,
        "value": {
            "amount": [
                {
                    "amount": format_amount(amount),
                    "denom": denom,
                }
            ],
            "from_address": sender,
            "to_address": recipient,
        },
    }


def build_send_tx(
    account: AccountState,
    recipient: str,
    amount: int | str,
    denom: str,
    memo: str,
    fee_amount: int = 0,
    gas: int = 0,
) -> dict[str, Any]:
    """Build an unsigned StdTx carrying exactly one MsgSend from the relay account."""
    if not recipient:
        raise ValidationError("recipient address is empty")
    tx = create_skeleton(account, memo)
    tx["value"]["msg"] = [create_send_msg(account.address, recipient, amount, denom)]
    return apply_fee(tx, fee_amount, gas, denom)
