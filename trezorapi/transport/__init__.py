"""
Transports
**********

A transport is the raw packet-level connection to one device.
It knows how to find devices, open one exclusively, and move fixed-size packets.
It knows nothing about the messages carried in those packets.

Use :func:`enumerate_devices` to list devices and :func:`get_transport` or :meth:`DeviceDescriptor.open`
to get a :class:`Transport` for one of them. Transports are context managers::

    with get_transport(path) as transport:
        transport.write_chunk(packet)
"""

import importlib
import logging

from dataclasses import dataclass
from typing import ClassVar, List, Optional, Type, TypeVar

from ..common import CHUNK_SIZE, READ_TIMEOUT_MS, Model
from ..errors import (
    DeviceBusyError,
    DeviceNotFoundError,
    DeviceNotUniqueError,
    NoDeviceFoundError,
    TransportIOError,
)

LOG = logging.getLogger(__name__)

T = TypeVar("T", bound="Transport")


@dataclass(frozen=True)
class DeviceDescriptor:
    """
    Identity of a device found during enumeration.
    """
    model: Model
    vendor_id: int
    product_id: int
    path: str
    serial_number: Optional[str] = None
    debug: bool = False

    def open(self) -> "Transport":
        """
        Get an opened transport for this device.

        :return: The transport, already opened
        """
        transport = get_transport(self.path)
        transport.open()
        return transport

    def __str__(self) -> str:
        return "{} ({}) (debug: {})".format(self.model, self.path, self.debug)


class Transport(object):
    """
    Exclusive packet-level access to one device.

    Subclasses implement :meth:`_open`, :meth:`_close`, :meth:`_write` and :meth:`_read`.
    This class takes care of the open/closed bookkeeping and the packet size checks.
    """

    PATH_PREFIX: ClassVar[str]
    CHUNK_SIZE: ClassVar[int] = CHUNK_SIZE

    def __init__(self, descriptor: DeviceDescriptor, read_timeout_ms: int = READ_TIMEOUT_MS) -> None:
        self.descriptor = descriptor
        self.read_timeout_ms = read_timeout_ms
        self._opened = False

    @classmethod
    def enumerate(cls, debug: Optional[bool] = None) -> List[DeviceDescriptor]:
        """
        List the devices reachable through this transport.

        :param debug: Only return debug link (``True``) or normal (``False``) interfaces. ``None`` returns both.
        """
        raise NotImplementedError

    @classmethod
    def find_by_path(cls: Type[T], path: str) -> T:
        for descriptor in cls.enumerate():
            if descriptor.path == path:
                return cls(descriptor)
        raise DeviceNotFoundError("{} device not found: {}".format(cls.PATH_PREFIX, path))

    def get_path(self) -> str:
        return self.descriptor.path

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> None:
        """
        Claim the device.

        :raises DeviceBusyError: if this transport is already open
        """
        if self._opened:
            raise DeviceBusyError("{} is already open".format(self.get_path()))
        LOG.info("opening device %s", self.get_path())
        self._open()
        self._opened = True

    def close(self) -> None:
        """Release the device. Closing a closed transport does nothing."""
        if not self._opened:
            return
        self._opened = False
        try:
            self._close()
        finally:
            LOG.info("closed device %s", self.get_path())

    def write_chunk(self, chunk: bytes) -> None:
        """
        Write one packet.

        :param chunk: Exactly :attr:`CHUNK_SIZE` bytes
        """
        if len(chunk) != self.CHUNK_SIZE:
            raise ValueError("Unexpected chunk size: {}".format(len(chunk)))
        if not self._opened:
            raise TransportIOError("{} is not open".format(self.get_path()))
        self._write(chunk)

    def read_chunk(self, timeout_ms: Optional[int] = None) -> bytes:
        """
        Read one packet.

        :param timeout_ms: How long to wait, defaults to :attr:`read_timeout_ms`
        :return: Exactly :attr:`CHUNK_SIZE` bytes
        """
        if not self._opened:
            raise TransportIOError("{} is not open".format(self.get_path()))
        if timeout_ms is None:
            timeout_ms = self.read_timeout_ms
        return self._read(timeout_ms)

    def _open(self) -> None:
        raise NotImplementedError

    def _close(self) -> None:
        raise NotImplementedError

    def _write(self, chunk: bytes) -> None:
        raise NotImplementedError

    def _read(self, timeout_ms: int) -> bytes:
        raise NotImplementedError

    def __enter__(self: T) -> T:
        if not self._opened:
            self.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __str__(self) -> str:
        return self.get_path()


def all_transports() -> List[Type[Transport]]:
    transports: List[Type[Transport]] = []
    for module, class_name in ((".webusb", "WebUsbTransport"), (".hid", "HidTransport")):
        try:
            imported = importlib.import_module(module, __package__)
            transports.append(getattr(imported, class_name))
        except ImportError as e:
            # Only the transports whose USB library is installed are used
            LOG.warning("%s, required for %s. Ignore if you do not use this transport.", e, class_name)
    return transports


def enumerate_devices(debug: Optional[bool] = None) -> List[DeviceDescriptor]:
    """
    List every Trezor device reachable through any transport.

    Devices answering on both WebUSB and HID are listed once per transport.

    :param debug: Only return debug link (``True``) or normal (``False``) interfaces. ``None`` returns both.
    """
    devices: List[DeviceDescriptor] = []
    for transport in all_transports():
        found = transport.enumerate(debug)
        LOG.debug("enumerated %d devices using %s", len(found), transport.__name__)
        devices.extend(found)
    return devices


def find_devices(debug: bool = False) -> List[DeviceDescriptor]:
    """
    Search for devices that speak the current (WebUSB) transport.

    Note: This will not show older devices that only support the HID interface.
    To use those, please use :func:`find_hid_devices`.
    """
    from .webusb import WebUsbTransport
    return WebUsbTransport.enumerate(debug)


def find_hid_devices(debug: bool = False) -> List[DeviceDescriptor]:
    """
    Search for devices with firmware older than 1.7.0 that only speak HID.
    """
    from .hid import HidTransport
    return HidTransport.enumerate(debug)


def get_transport(path: Optional[str] = None, prefix_search: bool = False) -> Transport:
    """
    Get a (closed) transport for the device at the given path.

    :param path: Device path as found in :attr:`DeviceDescriptor.path`. ``None`` picks the first device.
    :param prefix_search: Also accept devices whose path starts with ``path``
    :raises DeviceNotFoundError: if no device matches
    """
    if path is None:
        devices = enumerate_devices(debug=False)
        if not devices:
            raise NoDeviceFoundError()
        return _transport_for(devices[0])

    for descriptor in enumerate_devices():
        if descriptor.path == path or (prefix_search and descriptor.path.startswith(path)):
            return _transport_for(descriptor)
    raise DeviceNotFoundError("device not found: {}".format(path))


def unique(debug: Optional[bool] = False) -> Transport:
    """
    Get a transport for the single connected device.

    When using WebUSB the device shows up both with and without debug link,
    so ``debug`` must be given to find a unique one.

    :raises NoDeviceFoundError: if no device is connected
    :raises DeviceNotUniqueError: if more than one device is connected
    """
    devices = find_devices(debug) if debug is not None else enumerate_devices()
    if not devices:
        raise NoDeviceFoundError()
    if len(devices) > 1:
        LOG.debug("Trezor devices found: %s", ", ".join(str(d) for d in devices))
        raise DeviceNotUniqueError()
    return _transport_for(devices[0])


def _transport_for(descriptor: DeviceDescriptor) -> Transport:
    for transport in all_transports():
        if descriptor.path.startswith(transport.PATH_PREFIX + ":"):
            return transport(descriptor)
    raise DeviceNotFoundError("no transport for {}".format(descriptor.path))
