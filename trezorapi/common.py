"""
Common Classes and Utilities
****************************

Device identifiers, link constants and hashing helpers shared by every module.
"""

import hashlib

from enum import Enum

from typing import Dict, Optional, Tuple, Union


class Model(Enum):
    """
    The kind of Trezor device
    """
    TREZOR1 = "1" #: Trezor One
    TREZOR2 = "T" #: Trezor Model T
    TREZOR2_BL = "T-bootloader" #: Trezor Model T in bootloader mode

    def __str__(self) -> str:
        return {
            Model.TREZOR1: "Trezor 1",
            Model.TREZOR2: "Trezor 2",
            Model.TREZOR2_BL: "Trezor 2 Bootloader",
        }[self]


class Chain(Enum):
    """
    The blockchain network to use
    """
    MAIN = 0 #: Bitcoin Main network
    TEST = 1 #: Bitcoin Test network
    REGTEST = 2 #: Bitcoin Core Regression Test network

    def __str__(self) -> str:
        return str(self.name).lower()

    def __repr__(self) -> str:
        return str(self)

    @staticmethod
    def argparse(s: str) -> Union['Chain', str]:
        try:
            return Chain[s.upper()]
        except KeyError:
            return s


# USB identifiers
DEV_TREZOR1 = (0x534C, 0x0001)
DEV_TREZOR2 = (0x1209, 0x53C1)
DEV_TREZOR2_BL = (0x1209, 0x53C0)

USB_IDS: Dict[Tuple[int, int], Model] = {
    DEV_TREZOR1: Model.TREZOR1,
    DEV_TREZOR2: Model.TREZOR2,
    DEV_TREZOR2_BL: Model.TREZOR2_BL,
}

WIRELINK_USAGE = 0xFF00
WIRELINK_INTERFACE = 0
DEBUGLINK_USAGE = 0xFF01
DEBUGLINK_INTERFACE = 1

# Every packet on the wire is one USB report of this size
CHUNK_SIZE = 64

READ_TIMEOUT_MS = 100000
WRITE_TIMEOUT_MS = 100000

VENDORS = ("bitcointrezor.com", "trezor.io")

MINIMUM_FIRMWARE_VERSION = {
    "1": "1.6.1",
    "T": "2.0.8",
}


def derive_model(usb_id: Tuple[int, int]) -> Optional[Model]:
    """
    Map a (vendor id, product id) pair to a :class:`Model`.

    :return: The model, or ``None`` for devices that are not Trezors
    """
    return USB_IDS.get(usb_id)


def coin_name(chain: Chain) -> str:
    """
    Get the coin name the firmware uses for the given chain.

    :param chain: The chain
    :return: The coin name
    """
    if chain == Chain.MAIN:
        return "Bitcoin"
    return "Testnet"


def sha256(s: bytes) -> bytes:
    """
    Perform a single SHA256 hash.

    :param s: Bytes to hash
    :return: The hash
    """
    return hashlib.new('sha256', s).digest()


def hash256(s: bytes) -> bytes:
    """
    Perform a double SHA256 hash.
    A SHA256 is performed on the input, and then a second
    SHA256 is performed on the result of the first SHA256

    :param s: Bytes to hash
    :return: The hash
    """
    return sha256(sha256(s))
