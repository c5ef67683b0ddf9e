#! /usr/bin/env python3

import unittest

from trezorapi import messages

class TestCatalog(unittest.TestCase):
    def test_every_type_has_a_class(self):
        for message_type in messages.MessageType:
            with self.subTest(message_type=message_type):
                cls = messages.get_class(message_type)
                self.assertIsNotNone(cls)
                self.assertEqual(cls.DESCRIPTOR.name, message_type.name)
                self.assertIs(getattr(messages, message_type.name), cls)
                self.assertEqual(messages.get_type(cls()), message_type)

    def test_unknown_type(self):
        self.assertIsNone(messages.get_class(1000))
        self.assertIsNone(messages.get_class(-1))

    def test_nested_types_have_no_id(self):
        for name in ("TxInputType", "TxOutputType", "TransactionType", "HDNodeType"):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    messages.get_type(getattr(messages, name)())

    def test_wire_ids(self):
        self.assertEqual(messages.MessageType.Initialize, 0)
        self.assertEqual(messages.MessageType.Features, 17)
        self.assertEqual(messages.MessageType.SignTx, 15)
        self.assertEqual(messages.MessageType.TxRequest, 21)
        self.assertEqual(messages.MessageType.TxAck, 22)
        self.assertEqual(messages.MessageType.GetFeatures, 55)

    def test_defaults(self):
        self.assertEqual(messages.GetAddress().coin_name, "Bitcoin")
        self.assertEqual(messages.SignTx().version, 1)
        self.assertEqual(messages.TxInputType().sequence, 0xFFFFFFFF)
        self.assertFalse(messages.TxInputType().HasField("sequence"))

    def test_enum_fields(self):
        failure = messages.Failure(code=messages.FailureType.PinInvalid)
        self.assertEqual(failure.code, messages.FailureType.PinInvalid)
        msg = messages.GetAddress(script_type=messages.InputScriptType.SPENDWITNESS)
        self.assertEqual(msg.script_type, 3)

    def test_is_interaction(self):
        self.assertTrue(messages.is_interaction(messages.ButtonRequest()))
        self.assertTrue(messages.is_interaction(messages.PinMatrixRequest()))
        self.assertTrue(messages.is_interaction(messages.PassphraseRequest()))
        self.assertTrue(messages.is_interaction(messages.WordRequest()))
        self.assertFalse(messages.is_interaction(messages.Success()))
        self.assertFalse(messages.is_interaction(messages.TxRequest()))

    def test_format_hides_content(self):
        text = messages.format_message(messages.PinMatrixAck(pin="1234"))
        self.assertIn("PinMatrixAck", text)
        self.assertNotIn("1234", text)

if __name__ == "__main__":
    unittest.main()
