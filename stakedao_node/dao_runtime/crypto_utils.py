# stakedao_node/dao_runtime/crypto_utils.py
from __future__ import annotations

"""
Ed25519 helpers for organization authority proofs.

Each organization owns an authority keypair. Holding areas the runtime
does not control directly (treasury, mint, member vaults) are registered
with the authority's public key; moving value out of them requires a
signature by the authority over the canonical transfer message.

The authority secret is never stored in a record. It is re-derived on
demand from the node secret and the organization's config key, so the
same node always signs for the same organizations.
"""

import binascii
import hashlib
from typing import Tuple

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .keys import canonical_json_bytes


def _hex_to_bytes(h: str) -> bytes:
    """Decode hex string to raw bytes, accepting optional 0x prefix."""
    h = h.strip().lower().replace("0x", "")
    return binascii.unhexlify(h.encode("ascii"))


def _bytes_to_hex(b: bytes) -> str:
    return binascii.hexlify(b).decode("ascii")


def derive_authority_seed(node_secret: str, cfg_key: str) -> bytes:
    """32-byte Ed25519 seed bound to (node secret, organization)."""
    return hashlib.sha256(b"dao-authority|" + node_secret.encode("utf-8") + b"|" + cfg_key.encode("ascii")).digest()


def ed25519_keypair_from_seed(seed: bytes) -> Tuple[str, str]:
    """
    Returns
    -------
    (sk_hex, pk_hex) : Tuple[str, str]
        Hex-encoded secret key (the seed) and public key.
    """
    sk = SigningKey(seed)
    sk_hex = sk.encode(encoder=HexEncoder).decode("ascii")
    pk_hex = sk.verify_key.encode(encoder=HexEncoder).decode("ascii")
    return sk_hex, pk_hex


def ed25519_sign(secret_key_hex: str, message: bytes) -> str:
    sk = SigningKey(secret_key_hex, encoder=HexEncoder)
    return _bytes_to_hex(sk.sign(message).signature)


def ed25519_verify(public_key_hex: str, message: bytes, signature_hex: str) -> bool:
    """Returns True if the signature is valid, False otherwise."""
    try:
        vk = VerifyKey(public_key_hex, encoder=HexEncoder)
        vk.verify(message, _hex_to_bytes(signature_hex))
        return True
    except (BadSignatureError, binascii.Error, ValueError):
        return False


def transfer_message(source: str, dest: str, amount: int) -> bytes:
    return canonical_json_bytes({"from": source, "to": dest, "amount": int(amount)})
