"""
Target-chain address derivation.

A Cosmos-SDK account address is bech32(prefix, RIPEMD160(SHA256(pubkey)))
over the 33-byte compressed secp256k1 public key.
"""

import hashlib
from typing import Tuple

from coincurve import PrivateKey

from .errors import ValidationError

# Bech32 character set
BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"

# Amino prefix of tendermint/PubKeySecp256k1 in its binary encoding
AMINO_PUBKEY_PREFIX = bytes.fromhex("eb5ae98721")

COMPRESSED_PUBKEY_LENGTH = 33


def bech32_polymod(values: list[int]) -> int:
    """Internal function for Bech32 checksum computation."""
    GEN = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]
    chk = 1
    for v in values:
        b = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ v
        for i in range(5):
            chk ^= GEN[i] if ((b >> i) & 1) else 0
    return chk


def bech32_hrp_expand(hrp: str) -> list[int]:
    """Expand HRP for checksum computation."""
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def bech32_verify_checksum(hrp: str, data: list[int]) -> bool:
    """Verify Bech32 checksum."""
    return bech32_polymod(bech32_hrp_expand(hrp) + data) == 1


def bech32_create_checksum(hrp: str, data: list[int]) -> list[int]:
    """Compute the six checksum characters for hrp + data."""
    polymod = bech32_polymod(bech32_hrp_expand(hrp) + data + [0] * 6) ^ 1
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def convert_bits(data: bytes | list[int], frombits: int, tobits: int, pad: bool) -> list[int] | None:
    """Convert between bit widths."""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        if value < 0 or (value >> frombits):
            return None
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        return None

    return ret


def bech32_encode(hrp: str, payload: bytes) -> str:
    """Encode raw bytes as a bech32 string with the given human-readable prefix."""
    data = convert_bits(payload, 8, 5, True)
    if data is None:
        raise ValidationError("payload cannot be converted to 5-bit groups")
    combined = data + bech32_create_checksum(hrp, data)
    return hrp + "1" + "".join(BECH32_CHARSET[d] for d in combined)


def bech32_decode(address: str) -> Tuple[str, bytes] | None:
    """
    Decode a bech32 account address.

    Unlike segwit addresses there is no witness version byte: the whole
    data part is the payload.

    Returns:
        (hrp, payload) or None if invalid
    """
    if address.lower() != address and address.upper() != address:
        return None
    address = address.lower()

    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address):
        return None

    hrp = address[:pos]
    data_part = address[pos + 1:]

    data = []
    for c in data_part:
        if c not in BECH32_CHARSET:
            return None
        data.append(BECH32_CHARSET.index(c))

    if not bech32_verify_checksum(hrp, data):
        return None

    converted = convert_bits(data[:-6], 5, 8, False)
    if converted is None:
        return None

    return (hrp, bytes(converted))


def _ripemd160(data: bytes) -> bytes:
    try:
        r = hashlib.new("ripemd160")
    except ValueError:
        # OpenSSL 3 builds without the legacy provider drop ripemd160
        from Crypto.Hash import RIPEMD160

        return RIPEMD160.new(data).digest()
    r.update(data)
    return r.digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return _ripemd160(hashlib.sha256(data).digest())


def normalize_public_key(pubkey: bytes | str) -> bytes:
    """
    Return the 33-byte compressed key, unwrapping an amino-prefixed key.

    Raises:
        ValidationError: on any other length
    """
    if isinstance(pubkey, str):
        try:
            pubkey = bytes.fromhex(pubkey.removeprefix("0x"))
        except ValueError as e:
            raise ValidationError(f"public key is not valid hex: {e}") from e

    if len(pubkey) == COMPRESSED_PUBKEY_LENGTH + len(AMINO_PUBKEY_PREFIX) and pubkey.startswith(
        AMINO_PUBKEY_PREFIX
    ):
        pubkey = pubkey[len(AMINO_PUBKEY_PREFIX):]

    if len(pubkey) != COMPRESSED_PUBKEY_LENGTH:
        raise ValidationError(
            f"expected a {COMPRESSED_PUBKEY_LENGTH}-byte compressed public key, got {len(pubkey)} bytes"
        )
    return pubkey


def pubkey_to_hex_address(pubkey: bytes | str) -> str:
    """Uppercase hex of the 20-byte account hash."""
    return hash160(normalize_public_key(pubkey)).hex().upper()


def pubkey_to_address(pubkey: bytes | str, prefix: str = "cyber") -> str:
    """Derive the bech32 account address of a secp256k1 public key."""
    return bech32_encode(prefix, bytes.fromhex(pubkey_to_hex_address(pubkey)))


def load_private_key(private_key: str) -> PrivateKey:
    """Parse a hex private key (with or without 0x)."""
    if not private_key:
        raise ValidationError("target-chain private key is not configured")
    try:
        return PrivateKey(bytes.fromhex(private_key.removeprefix("0x")))
    except ValueError as e:
        raise ValidationError(f"invalid target-chain private key: {e}") from e


def public_key_from_private_key(private_key: str) -> bytes:
    """Compressed public key bytes for a hex private key."""
    return load_private_key(private_key).public_key.format(compressed=True)
