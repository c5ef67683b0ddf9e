#! /usr/bin/env python3

from io import BytesIO
import unittest

from trezorapi.messages import InputScriptType
from trezorapi.tx import (
    Transaction,
    TxInput,
    TxOutput,
    deser_compact_size,
    index_by_txid,
    ser_compact_size,
)

GENESIS_TX = (
    "01000000010000000000000000000000000000000000000000000000000000000000000000ffffffff"
    "4d04ffff001d0104455468652054696d65732030332f4a616e2f32303039204368616e63656c6c6f72"
    "206f6e206272696e6b206f66207365636f6e64206261696c6f757420666f722062616e6b73ffffffff"
    "0100f2052a01000000434104678afdb0fe5548271967f1a67130b7105cd6a828e03909a67962e0ea1f"
    "61deb649f6bc3f4cef38c4f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac00000000"
)
GENESIS_TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"

class TestCompactSize(unittest.TestCase):
    def test_sizes(self):
        for size, encoded in [
            (0, "00"),
            (252, "fc"),
            (253, "fdfd00"),
            (0xFFFF, "fdffff"),
            (0x10000, "fe00000100"),
            (0x100000000, "ff0000000001000000"),
        ]:
            with self.subTest(size=size):
                self.assertEqual(ser_compact_size(size).hex(), encoded)
                self.assertEqual(deser_compact_size(BytesIO(bytes.fromhex(encoded))), size)

    def test_short(self):
        with self.assertRaises(ValueError):
            deser_compact_size(BytesIO(b"\xfd\x01"))

class TestTransaction(unittest.TestCase):
    def test_genesis(self):
        tx = Transaction.from_hex(GENESIS_TX)
        self.assertEqual(tx.version, 1)
        self.assertEqual(len(tx.inputs), 1)
        self.assertEqual(len(tx.outputs), 1)
        self.assertEqual(tx.inputs[0].prev_hash, b"\x00" * 32)
        self.assertEqual(tx.inputs[0].prev_index, 0xFFFFFFFF)
        self.assertEqual(len(tx.inputs[0].script_sig), 77)
        self.assertEqual(tx.outputs[0].amount, 50 * 100000000)
        self.assertEqual(tx.serialize().hex(), GENESIS_TX)
        self.assertEqual(tx.txid().hex(), GENESIS_TXID)
        self.assertEqual(list(index_by_txid([tx])), [bytes.fromhex(GENESIS_TXID)])

    def test_witness_stripped(self):
        prev_hash = bytes(range(32))
        txin = prev_hash[::-1] + b"\x01\x00\x00\x00" + b"\x00" + b"\xfd\xff\xff\xff"
        txout = (12345).to_bytes(8, "little") + b"\x16\x00\x14" + b"\x42" * 20
        witness = b"\x02" + b"\x01\xaa" + b"\x03\xbb\xcc\xdd"
        stripped = b"\x02\x00\x00\x00" + b"\x01" + txin + b"\x01" + txout + b"\x11\x00\x00\x00"
        with_witness = b"\x02\x00\x00\x00" + b"\x00\x01" + b"\x01" + txin + b"\x01" + txout + witness + b"\x11\x00\x00\x00"

        tx = Transaction.from_bytes(with_witness)
        self.assertEqual(tx.inputs[0].prev_hash, prev_hash)
        self.assertEqual(tx.inputs[0].prev_index, 1)
        self.assertEqual(tx.inputs[0].sequence, 0xFFFFFFFD)
        self.assertEqual(tx.outputs[0].amount, 12345)
        self.assertEqual(tx.lock_time, 17)
        self.assertEqual(tx.serialize(), stripped)
        self.assertEqual(tx, Transaction.from_bytes(stripped))

    def test_trailing_data(self):
        with self.assertRaises(ValueError):
            Transaction.from_hex(GENESIS_TX + "00")

    def test_truncated(self):
        with self.assertRaises(ValueError):
            Transaction.from_hex(GENESIS_TX[:-2])

    def test_immutable(self):
        tx = Transaction(
            inputs=[TxInput(prev_hash=b"\x01" * 32, prev_index=0, address_n=[1, 2], script_type=InputScriptType.SPENDWITNESS, amount=5)],
            outputs=[TxOutput(amount=4, address="bc1q")],
        )
        self.assertIsInstance(tx.inputs, tuple)
        self.assertIsInstance(tx.inputs[0].address_n, tuple)
        with self.assertRaises(AttributeError):
            tx.version = 2
        self.assertEqual(hash(tx), hash(Transaction(inputs=tuple(tx.inputs), outputs=tuple(tx.outputs))))

    def test_bad_prev_hash(self):
        with self.assertRaises(ValueError):
            TxInput(prev_hash=b"\x01" * 31, prev_index=0)

if __name__ == "__main__":
    unittest.main()
