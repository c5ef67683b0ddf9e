"""
Host Transaction Model
**********************

The transaction to sign, and the previous transactions it spends, as immutable values.
Inputs and outputs are addressed by their zero-based position, the same way the device asks for them.

Transactions can be built by hand or deserialized from their consensus encoding.
All hashes (``prev_hash``, :meth:`Transaction.txid`) are in the usual display byte order.
"""

import struct

from dataclasses import dataclass
from io import BytesIO
from typing import Dict, Iterable, Optional, Tuple

from typing_extensions import Protocol

from .common import hash256
from .messages import InputScriptType, OutputScriptType


class Readable(Protocol):
    def read(self, n: int = -1) -> bytes:
        ...


# Serialization/deserialization tools
def ser_compact_size(size: int) -> bytes:
    r = b""
    if size < 253:
        r = struct.pack("B", size)
    elif size < 0x10000:
        r = struct.pack("<BH", 253, size)
    elif size < 0x100000000:
        r = struct.pack("<BI", 254, size)
    else:
        r = struct.pack("<BQ", 255, size)
    return r


def deser_compact_size(f: Readable) -> int:
    nit: int = struct.unpack("<B", read_exact(f, 1))[0]
    if nit == 253:
        nit = struct.unpack("<H", read_exact(f, 2))[0]
    elif nit == 254:
        nit = struct.unpack("<I", read_exact(f, 4))[0]
    elif nit == 255:
        nit = struct.unpack("<Q", read_exact(f, 8))[0]
    return nit


def ser_string(s: bytes) -> bytes:
    return ser_compact_size(len(s)) + s


def deser_string(f: Readable) -> bytes:
    nit = deser_compact_size(f)
    return read_exact(f, nit)


def read_exact(f: Readable, n: int) -> bytes:
    data = f.read(n)
    if len(data) != n:
        raise ValueError("Unexpected end of transaction data")
    return data


@dataclass(frozen=True)
class TxInput:
    """
    One transaction input.

    For the transaction being signed, ``address_n`` and ``script_type`` tell the device which key signs it,
    and segwit inputs need ``amount``. Inputs of previous transactions only use
    ``prev_hash``, ``prev_index``, ``script_sig`` and ``sequence``.
    """
    prev_hash: bytes
    prev_index: int
    address_n: Tuple[int, ...] = ()
    script_type: InputScriptType = InputScriptType.SPENDADDRESS
    amount: Optional[int] = None
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF

    def __post_init__(self) -> None:
        if len(self.prev_hash) != 32:
            raise ValueError("prev_hash must be 32 bytes")
        object.__setattr__(self, "address_n", tuple(self.address_n))

    def serialize(self) -> bytes:
        r = b""
        r += self.prev_hash[::-1]
        r += struct.pack("<I", self.prev_index)
        r += ser_string(self.script_sig)
        r += struct.pack("<I", self.sequence)
        return r

    @classmethod
    def deserialize(cls, f: Readable) -> "TxInput":
        prev_hash = read_exact(f, 32)[::-1]
        prev_index = struct.unpack("<I", read_exact(f, 4))[0]
        script_sig = deser_string(f)
        sequence = struct.unpack("<I", read_exact(f, 4))[0]
        return cls(prev_hash=prev_hash, prev_index=prev_index, script_sig=script_sig, sequence=sequence)


@dataclass(frozen=True)
class TxOutput:
    """
    One transaction output.

    For the transaction being signed, give either ``address`` or, for change, ``address_n``.
    Outputs of previous transactions only use ``amount`` and ``script_pubkey``.
    """
    amount: int
    address: Optional[str] = None
    address_n: Tuple[int, ...] = ()
    script_type: OutputScriptType = OutputScriptType.PAYTOADDRESS
    script_pubkey: bytes = b""
    op_return_data: Optional[bytes] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "address_n", tuple(self.address_n))

    def serialize(self) -> bytes:
        r = b""
        r += struct.pack("<q", self.amount)
        r += ser_string(self.script_pubkey)
        return r

    @classmethod
    def deserialize(cls, f: Readable) -> "TxOutput":
        amount = struct.unpack("<q", read_exact(f, 8))[0]
        script_pubkey = deser_string(f)
        return cls(amount=amount, script_pubkey=script_pubkey)


@dataclass(frozen=True)
class Transaction:
    """
    A transaction: the one to sign, or a previous one whose outputs it spends.
    """
    inputs: Tuple[TxInput, ...]
    outputs: Tuple[TxOutput, ...]
    version: int = 1
    lock_time: int = 0
    extra_data: bytes = b""

    def __post_init__(self) -> None:
        # Accept lists, but keep the stored value immutable
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    def serialize(self) -> bytes:
        """Serialize without witness data"""
        r = b""
        r += struct.pack("<i", self.version)
        r += ser_compact_size(len(self.inputs))
        for txin in self.inputs:
            r += txin.serialize()
        r += ser_compact_size(len(self.outputs))
        for txout in self.outputs:
            r += txout.serialize()
        r += struct.pack("<I", self.lock_time)
        r += self.extra_data
        return r

    def txid(self) -> bytes:
        """The transaction hash, in display byte order"""
        return hash256(self.serialize())[::-1]

    @classmethod
    def deserialize(cls, f: Readable) -> "Transaction":
        """
        Read a transaction, skipping any witness data.
        """
        version = struct.unpack("<i", read_exact(f, 4))[0]
        n_inputs = deser_compact_size(f)
        flags = 0
        if n_inputs == 0:
            flags = struct.unpack("<B", read_exact(f, 1))[0]
            if flags != 0:
                n_inputs = deser_compact_size(f)
        inputs = tuple(TxInput.deserialize(f) for _ in range(n_inputs))
        outputs = tuple(TxOutput.deserialize(f) for _ in range(deser_compact_size(f)))
        if flags & 1:
            for _ in inputs:
                for _ in range(deser_compact_size(f)):
                    deser_string(f)
        lock_time = struct.unpack("<I", read_exact(f, 4))[0]
        return cls(inputs=inputs, outputs=outputs, version=version, lock_time=lock_time)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Transaction":
        f = BytesIO(raw)
        tx = cls.deserialize(f)
        if f.read(1):
            raise ValueError("Trailing data after transaction")
        return tx

    @classmethod
    def from_hex(cls, raw: str) -> "Transaction":
        return cls.from_bytes(bytes.fromhex(raw))


def index_by_txid(txes: Iterable[Transaction]) -> Dict[bytes, Transaction]:
    """Map previous transactions by their txid, the way the device refers to them"""
    return {tx.txid(): tx for tx in txes}
