#! /usr/bin/env python3

import unittest

from scripted_device import open_session

from trezorapi import btc, messages
from trezorapi.errors import ActionCanceledError, UnexpectedMessageError
from trezorapi.messages import InputScriptType, RequestType
from trezorapi.session import SessionState
from trezorapi.tools import H_
from trezorapi.tx import Transaction, TxInput, TxOutput

PATH = [H_(84), H_(0), H_(0), 0, 0]

class RecordingUI(object):
    def __init__(self, pins=(), words=(), cancel_buttons=False):
        self.pins = list(pins)
        self.words = list(words)
        self.cancel_buttons = cancel_buttons
        self.buttons = []

    def button_request(self, code):
        if self.cancel_buttons:
            raise ActionCanceledError("declined")
        self.buttons.append(code)

    def get_pin(self, code=None):
        return self.pins.pop(0)

    def get_passphrase(self):
        return ""

    def get_word(self, type=None):
        return self.words.pop(0)

class TestKeys(unittest.TestCase):
    def test_get_address(self):
        session = open_session(messages.Address(address="bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"))
        address = btc.get_address(session, "Bitcoin", PATH, script_type=InputScriptType.SPENDWITNESS)
        self.assertEqual(address, "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu")
        request = session.transport.received[1]
        self.assertEqual(list(request.address_n), PATH)
        self.assertEqual(request.script_type, InputScriptType.SPENDWITNESS)
        self.assertFalse(request.HasField("multisig"))

    def test_get_address_show_display(self):
        ui = RecordingUI()
        session = open_session(messages.ButtonRequest(code=messages.ButtonRequestType.Address), messages.Address(address="1abc"))
        self.assertEqual(btc.get_address(session, "Bitcoin", PATH, show_display=True, ui=ui), "1abc")
        self.assertEqual(ui.buttons, [messages.ButtonRequestType.Address])

    def test_get_public_node(self):
        node = messages.HDNodeType(depth=3, fingerprint=0, child_num=H_(0), chain_code=b"\x00" * 32, public_key=b"\x02" * 33)
        session = open_session(messages.PublicKey(node=node, xpub="xpub6"))
        resp = btc.get_public_node(session, PATH[:3], ecdsa_curve_name="secp256k1")
        self.assertEqual(resp.xpub, "xpub6")
        self.assertEqual(resp.node.public_key, b"\x02" * 33)
        self.assertEqual(session.transport.received[1].ecdsa_curve_name, "secp256k1")
        self.assertFalse(session.transport.received[1].HasField("script_type"))

    def test_unexpected_response(self):
        session = open_session(messages.Success())
        with self.assertRaises(UnexpectedMessageError):
            btc.get_address(session, "Bitcoin", PATH)

class TestMessages(unittest.TestCase):
    def test_sign_message(self):
        session = open_session(messages.MessageSignature(address="1abc", signature=b"\x1f" + b"\x00" * 64))
        resp = btc.sign_message(session, "Bitcoin", PATH, "Café")
        self.assertEqual(resp.address, "1abc")
        self.assertEqual(session.transport.received[1].message, "Café".encode("utf-8"))

    def test_verify_message(self):
        session = open_session(messages.Success(message="Message verified"))
        self.assertTrue(btc.verify_message(session, "Bitcoin", "1abc", b"\x1f" * 65, "hello"))

    def test_verify_message_invalid(self):
        session = open_session(messages.Failure(code=messages.FailureType.DataError, message="Invalid signature"))
        self.assertFalse(btc.verify_message(session, "Bitcoin", "1abc", b"\x1f" * 65, "hello"))
        self.assertEqual(session.state, SessionState.READY)

class TestSignTx(unittest.TestCase):
    def setUp(self):
        self.tx = Transaction(
            inputs=[TxInput(prev_hash=b"\x11" * 32, prev_index=0, address_n=PATH, script_type=InputScriptType.SPENDWITNESS, amount=10000)],
            outputs=[TxOutput(amount=9000, address="bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu")],
            version=2,
        )

    def test_sign_tx(self):
        ui = RecordingUI(pins=["1234"])
        session = open_session(
            messages.PinMatrixRequest(),
            messages.TxRequest(request_type=RequestType.TXOUTPUT, details=messages.TxRequestDetailsType(request_index=0)),
            messages.ButtonRequest(code=messages.ButtonRequestType.ConfirmOutput),
            messages.TxRequest(request_type=RequestType.TXINPUT, details=messages.TxRequestDetailsType(request_index=0)),
            messages.TxRequest(
                request_type=RequestType.TXFINISHED,
                serialized=messages.TxRequestSerializedType(signature_index=0, signature=b"\x30\x44", serialized_tx=b"\x02\x00"),
            ),
        )
        result = btc.sign_tx(session, "Bitcoin", self.tx, ui=ui)
        self.assertEqual(result.signatures, (b"\x30\x44",))
        self.assertEqual(result.serialized_tx, b"\x02\x00")
        self.assertEqual(ui.buttons, [messages.ButtonRequestType.ConfirmOutput])
        self.assertEqual(
            session.transport.received_types(),
            ["Initialize", "SignTx", "PinMatrixAck", "TxAck", "ButtonAck", "TxAck"],
        )

    def test_sign_tx_declined(self):
        ui = RecordingUI(cancel_buttons=True)
        session = open_session(
            messages.ButtonRequest(code=messages.ButtonRequestType.SignTx),
            messages.Failure(code=messages.FailureType.ActionCancelled),
        )
        with self.assertRaises(ActionCanceledError):
            btc.sign_tx(session, "Bitcoin", self.tx, ui=ui)
        self.assertEqual(session.transport.received_types(), ["Initialize", "SignTx", "Cancel"])
        self.assertEqual(session.state, SessionState.READY)

if __name__ == "__main__":
    unittest.main()
