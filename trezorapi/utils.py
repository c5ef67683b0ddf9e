"""
Signature Utilities
*******************

Host-side checks of message signatures returned by the device.
The curve arithmetic is done by :mod:`ecdsa`.
"""

from typing import List, NamedTuple

import ecdsa

from .common import hash256
from .errors import BadArgumentError
from .tx import ser_string

MESSAGE_MAGIC = b"Bitcoin Signed Message:\n"


class RecoverableSignature(NamedTuple):
    recovery_id: int
    compressed: bool
    r: int
    s: int

    def to_string(self) -> bytes:
        """The 64 byte ``r || s`` encoding"""
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big")


def parse_recoverable_signature(sig: bytes) -> RecoverableSignature:
    """
    Parse a Bitcoin Core-style 65-byte recoverable signature.

    The first byte is ``27 + recovery id``, plus 4 for compressed keys.
    Segwit message signatures use 35 and 39 as base instead, those keys are always compressed.

    :param sig: The signature from a ``MessageSignature``
    :raises BadArgumentError: if the signature is malformed
    """
    if len(sig) != 65:
        raise BadArgumentError("Recoverable signatures are 65 bytes, got {}".format(len(sig)))
    header = sig[0]
    if header < 27 or header > 42:
        raise BadArgumentError("Invalid signature header byte {}".format(header))
    return RecoverableSignature(
        recovery_id=(header - 27) & 3,
        compressed=header >= 31,
        r=int.from_bytes(sig[1:33], "big"),
        s=int.from_bytes(sig[33:65], "big"),
    )


def message_digest(message: bytes) -> bytes:
    """The double SHA256 of a message wrapped in the signed message envelope"""
    return hash256(ser_string(MESSAGE_MAGIC) + ser_string(message))


def recover_public_keys(sig: bytes, message: bytes) -> List[bytes]:
    """
    Get every public key the signature of the message could belong to.

    :return: The candidate keys, SEC encoded and compressed as the signature header says
    """
    parsed = parse_recoverable_signature(sig)
    keys = ecdsa.VerifyingKey.from_public_key_recovery_with_digest(
        parsed.to_string(),
        message_digest(message),
        ecdsa.curves.SECP256k1,
        sigdecode=ecdsa.util.sigdecode_string,
    )
    encoding = "compressed" if parsed.compressed else "uncompressed"
    return [key.to_string(encoding) for key in keys]


def verify_message_signature(pubkey: bytes, sig: bytes, message: bytes) -> bool:
    """
    Check a message signature against a known public key.

    :param pubkey: SEC encoded public key, compressed or not
    :param sig: The 65 byte recoverable signature
    :param message: The signed message
    """
    parsed = parse_recoverable_signature(sig)
    try:
        key = ecdsa.VerifyingKey.from_string(pubkey, curve=ecdsa.curves.SECP256k1)
    except (ecdsa.MalformedPointError, ValueError) as e:
        raise BadArgumentError("Invalid public key: {}".format(e))
    try:
        return key.verify_digest(parsed.to_string(), message_digest(message), sigdecode=ecdsa.util.sigdecode_string)
    except ecdsa.BadSignatureError:
        return False
