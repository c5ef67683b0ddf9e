#! /usr/bin/env python3

import unittest

from trezorapi import messages
from trezorapi.errors import UnexpectedMessageError
from trezorapi.tools import (
    H_,
    HARDENED_FLAG,
    expect,
    format_path,
    is_hardened,
    normalize_nfc,
    parse_path,
)

class TestPaths(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(parse_path("m/44h/0'/-1/0/5"), [H_(44), H_(0), H_(1), 0, 5])
        self.assertEqual(parse_path("0/1h/1"), [0, 0x80000001, 1])
        self.assertEqual(parse_path("m"), [])
        self.assertEqual(parse_path(""), [])

    def test_invalid(self):
        for path in ("m/a", "m/1/", "m/44hh", "m/4294967296", "m/4294967296h"):
            with self.subTest(path=path):
                with self.assertRaises(ValueError):
                    parse_path(path)

    def test_format(self):
        self.assertEqual(format_path([H_(84), H_(1), H_(0), 1, 7]), "m/84h/1h/0h/1/7")
        self.assertEqual(format_path([]), "m")
        self.assertEqual(parse_path(format_path([H_(49), 0xFFFFFFFF])), [H_(49), 0xFFFFFFFF])

    def test_hardened(self):
        self.assertTrue(is_hardened(HARDENED_FLAG))
        self.assertFalse(is_hardened(HARDENED_FLAG - 1))

class TestText(unittest.TestCase):
    def test_normalize_nfc(self):
        decomposed = "e\u0301"
        self.assertEqual(normalize_nfc(decomposed), "\u00e9")
        self.assertEqual(normalize_nfc(decomposed.encode("utf-8")), "\u00e9")
        with self.assertRaises(TypeError):
            normalize_nfc(5)

class TestExpect(unittest.TestCase):
    def test_expected_type(self):
        @expect(messages.Address, field="address")
        def get(resp):
            return resp

        self.assertEqual(get(messages.Address(address="1abc")), "1abc")
        with self.assertRaises(UnexpectedMessageError) as e:
            get(messages.Success())
        self.assertIn("Address", str(e.exception))
        self.assertIsInstance(e.exception.response, messages.Success)

    def test_whole_message(self):
        @expect(messages.Success)
        def get():
            return messages.Success(message="ok")

        self.assertEqual(get().message, "ok")
        self.assertEqual(get.__name__, "get")

if __name__ == "__main__":
    unittest.main()
