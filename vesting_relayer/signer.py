"""
Canonical signing of amino JSON transactions.

The bytes that get signed are the compact, key-sorted JSON of
{account_number, chain_id, fee, memo, msgs, sequence} with null fields
removed. The node rebuilds the same bytes to verify the signature, so
serialization must be byte-exact and independent of construction order.
"""

import base64
import copy
import hashlib
import json
from typing import Any

import structlog
from coincurve import PrivateKey, PublicKey

from .address import normalize_public_key
from .errors import SigningError, ValidationError
from .models import AccountState
from .tx import PUBKEY_TYPE

logger = structlog.get_logger()


def canonicalize(value: Any) -> Any:
    """
    Recursively sort object keys and drop keys whose value is None.

    List order is preserved.
    """
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, dict):
        return {
            key: canonicalize(value[key])
            for key in sorted(value)
            if value[key] is not None
        }
    return value


def canonical_json(value: Any) -> bytes:
    """Compact canonical JSON, UTF-8 encoded."""
    return json.dumps(
        canonicalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def _require_signing_context(account: AccountState | None) -> AccountState:
    if account is None:
        raise ValidationError("account state is not defined")
    if not account.chain_id:
        raise ValidationError("account state does not contain the chain id")
    if account.account_number is None:
        raise ValidationError("account state does not contain the account number")
    if account.sequence is None:
        raise ValidationError("account state does not contain the sequence value")
    return account


def sign_doc(tx: dict[str, Any], account: AccountState) -> dict[str, Any]:
    """The structure whose canonical form is signed."""
    account = _require_signing_context(account)
    value = tx["value"]
    return {
        "account_number": str(account.account_number),
        "chain_id": account.chain_id,
        "fee": value.get("fee"),
        "memo": value.get("memo"),
        "msgs": value.get("msg"),
        "sequence": str(account.sequence),
    }


def bytes_to_sign(tx: dict[str, Any], account: AccountState) -> bytes:
    """Canonical signing payload for a transaction."""
    return canonical_json(sign_doc(tx, account))


def apply_signature(
    unsigned_tx: dict[str, Any],
    account: AccountState,
    signature: bytes,
) -> dict[str, Any]:
    """Return a copy of the transaction with the real signature in its single slot."""
    if not account.public_key_hex:
        raise ValidationError("account state does not contain the public key")
    pubkey = normalize_public_key(account.public_key_hex)

    signed = copy.deepcopy(unsigned_tx)
    signed["value"]["signatures"] = [
        {
            "signature": base64.b64encode(signature).decode("ascii"),
            "account_number": str(account.account_number),
            "sequence": str(account.sequence),
            "pub_key": {
                "type": PUBKEY_TYPE,
                "value": base64.b64encode(pubkey).decode("ascii"),
            },
        }
    ]
    return signed


def sign_tx(
    unsigned_tx: dict[str, Any],
    account: AccountState,
    private_key: PrivateKey,
) -> dict[str, Any]:
    """
    Sign a transaction with secp256k1 over SHA-256 of its canonical payload.

    The caller's transaction is left untouched; a signed copy is returned.

    Raises:
        ValidationError: if the account context is incomplete
        SigningError: if the signature could not be produced
    """
    payload = bytes_to_sign(unsigned_tx, account)
    digest = hashlib.sha256(payload).digest()

    try:
        # 65 bytes r || s || recid; the node expects the 64-byte compact form
        signature = private_key.sign_recoverable(digest, hasher=None)[:64]
    except Exception as e:
        raise SigningError(f"secp256k1 signing failed: {e}") from e

    signed = apply_signature(unsigned_tx, account, signature)

    logger.info(
        "cyber_tx_signed",
        signer=account.address,
        account_number=account.account_number,
        sequence=account.sequence,
        chain_id=account.chain_id,
    )

    return signed


def verify_tx_signature(signed_tx: dict[str, Any], account: AccountState) -> bool:
    """
    Check that the embedded signature was made by the embedded public key
    over this transaction's canonical payload.
    """
    entry = signed_tx["value"]["signatures"][0]
    signature = base64.b64decode(entry["signature"])
    pubkey = base64.b64decode(entry["pub_key"]["value"])
    if len(signature) != 64:
        return False

    digest = hashlib.sha256(bytes_to_sign(signed_tx, account)).digest()

    # A compact signature carries no recovery id, so try both
    for recid in (0, 1):
        try:
            recovered = PublicKey.from_signature_and_message(
                signature + bytes([recid]), digest, hasher=None
            )
        except ValueError:
            continue
        if recovered.format(compressed=True) == pubkey:
            return True
    return False
