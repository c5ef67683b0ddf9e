#! /usr/bin/env python3

import argparse
import sys
import unittest

from test_btc import TestKeys, TestMessages, TestSignTx
from test_cli import TestCLI
from test_codec import TestDecode, TestEncode
from test_device import TestManagement, TestSetup
from test_messages import TestCatalog
from test_session import TestCall, TestCancel, TestExchange, TestFailures, TestHandshake
from test_signer import TestLinkFailures, TestPreviousTransactions, TestProtocolViolations, TestSigningRun
from test_tools import TestExpect, TestPaths, TestText
from test_tx import TestCompactSize, TestTransaction
from test_utils import TestMessageSignatures

parser = argparse.ArgumentParser(description='Run the automated tests against scripted devices')
parser.add_argument('--no-transport', dest='transport', help='Do not run the USB transport tests, which need hidapi and libusb1', action='store_false')
parser.add_argument('--verbosity', '-v', help='Test runner verbosity', type=int, default=2)
args = parser.parse_args()

# Run tests
suite = unittest.TestSuite()
for case in [
    TestEncode,
    TestDecode,
    TestCatalog,
    TestPaths,
    TestText,
    TestExpect,
    TestCompactSize,
    TestTransaction,
    TestMessageSignatures,
    TestHandshake,
    TestExchange,
    TestFailures,
    TestCancel,
    TestCall,
    TestSigningRun,
    TestPreviousTransactions,
    TestProtocolViolations,
    TestLinkFailures,
    TestKeys,
    TestMessages,
    TestSignTx,
    TestManagement,
    TestSetup,
    TestCLI,
]:
    suite.addTests(unittest.defaultTestLoader.loadTestsFromTestCase(case))

if args.transport:
    from test_transport import TestDiscovery, TestHidTransport, TestWebUsbTransport
    for case in [TestHidTransport, TestWebUsbTransport, TestDiscovery]:
        suite.addTests(unittest.defaultTestLoader.loadTestsFromTestCase(case))

success = unittest.TextTestRunner(stream=sys.stdout, verbosity=args.verbosity).run(suite).wasSuccessful()
sys.exit(not success)
