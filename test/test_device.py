#! /usr/bin/env python3

import unittest

from scripted_device import features, open_session
from test_btc import RecordingUI

from trezorapi import device, messages
from trezorapi.errors import BadArgumentError, PinError

class TestManagement(unittest.TestCase):
    def test_ping(self):
        session = open_session(messages.ButtonRequest(), messages.Success(message="hi"))
        self.assertEqual(device.ping(session, "hi", button_protection=True), "hi")
        self.assertTrue(session.transport.received[1].button_protection)

    def test_change_pin(self):
        ui = RecordingUI(pins=["1234", "5678", "5678"])
        session = open_session(
            messages.ButtonRequest(),
            messages.PinMatrixRequest(type=messages.PinMatrixRequestType.Current),
            messages.PinMatrixRequest(type=messages.PinMatrixRequestType.NewFirst),
            messages.PinMatrixRequest(type=messages.PinMatrixRequestType.NewSecond),
            messages.Success(message="PIN changed"),
            features(pin_protection=True),
        )
        self.assertEqual(device.change_pin(session, ui=ui), "PIN changed")
        pins = [m.pin for m in session.transport.received if isinstance(m, messages.PinMatrixAck)]
        self.assertEqual(pins, ["1234", "5678", "5678"])
        self.assertTrue(session.features.pin_protection)

    def test_change_pin_mismatch(self):
        ui = RecordingUI(pins=["1234", "5678"])
        session = open_session(
            messages.PinMatrixRequest(type=messages.PinMatrixRequestType.NewFirst),
            messages.PinMatrixRequest(type=messages.PinMatrixRequestType.NewSecond),
            messages.Failure(code=messages.FailureType.PinInvalid, message="PIN mismatch"),
        )
        with self.assertRaises(PinError):
            device.change_pin(session, ui=ui)

    def test_apply_settings(self):
        session = open_session(messages.ButtonRequest(), messages.Success(message="Settings applied"), features(label="new"))
        self.assertEqual(device.apply_settings(session, label="new", use_passphrase=True), "Settings applied")
        request = session.transport.received[1]
        self.assertEqual(request.label, "new")
        self.assertTrue(request.use_passphrase)
        self.assertFalse(request.HasField("language"))
        self.assertEqual(session.features.label, "new")

    def test_get_entropy(self):
        session = open_session(messages.ButtonRequest(), messages.Entropy(entropy=b"\x42" * 32))
        self.assertEqual(device.get_entropy(session, 32), b"\x42" * 32)

    def test_wipe(self):
        session = open_session(messages.ButtonRequest(), messages.Success(message="Device wiped"), features(initialized=False))
        self.assertEqual(device.wipe(session), "Device wiped")
        self.assertFalse(session.features.initialized)
        self.assertEqual(session.transport.received_types()[-1], "Initialize")

class TestSetup(unittest.TestCase):
    def test_reset(self):
        session = open_session(
            messages.EntropyRequest(),
            messages.ButtonRequest(),
            messages.Success(message="Initialized"),
            features(),
            initialized=False,
        )
        self.assertEqual(device.reset(session, strength=128, label="new"), "Initialized")
        reset_device, entropy_ack = session.transport.received[1:3]
        self.assertEqual(reset_device.strength, 128)
        self.assertEqual(reset_device.label, "new")
        self.assertEqual(len(entropy_ack.entropy), 32)
        self.assertTrue(session.features.initialized)

    def test_reset_initialized(self):
        session = open_session()
        with self.assertRaises(BadArgumentError):
            device.reset(session)
        self.assertEqual(session.transport.received_types(), ["Initialize"])

    def test_reset_bad_strength(self):
        session = open_session(initialized=False)
        with self.assertRaises(BadArgumentError):
            device.reset(session, strength=100)

    def test_recover(self):
        ui = RecordingUI(words=["Abandon", "ability "])
        session = open_session(
            messages.ButtonRequest(),
            messages.WordRequest(type=messages.WordRequestType.Plain),
            messages.WordRequest(type=messages.WordRequestType.Plain),
            messages.Success(message="Device recovered"),
            features(),
            initialized=False,
        )
        self.assertEqual(device.recover(session, word_count=12, ui=ui), "Device recovered")
        words = [m.word for m in session.transport.received if isinstance(m, messages.WordAck)]
        self.assertEqual(words, ["abandon", "ability"])
        self.assertTrue(session.transport.received[1].enforce_wordlist)

    def test_recover_bad_word_count(self):
        session = open_session(initialized=False)
        with self.assertRaises(BadArgumentError):
            device.recover(session, word_count=13)

    def test_recover_initialized(self):
        session = open_session()
        with self.assertRaises(BadArgumentError):
            device.recover(session)

    def test_backup(self):
        session = open_session(messages.ButtonRequest(), messages.Success(message="Seed successfully backed up"), features())
        self.assertEqual(device.backup(session), "Seed successfully backed up")

if __name__ == "__main__":
    unittest.main()
