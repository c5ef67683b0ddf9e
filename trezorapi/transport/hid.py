"""
HID Transport
*************

Legacy transport for Trezor One devices with firmware older than 1.7.0, using hidapi.
"""

import logging

from typing import Any, Dict, List, Optional

import hid

from . import DeviceDescriptor, Transport
from ..common import (
    DEBUGLINK_INTERFACE,
    DEBUGLINK_USAGE,
    WIRELINK_INTERFACE,
    WIRELINK_USAGE,
    derive_model,
)
from ..errors import (
    DeviceAccessDeniedError,
    DeviceDisconnectedError,
    DeviceNotFoundError,
    TransportIOError,
    TransportTimeoutError,
)

LOG = logging.getLogger(__name__)

HID_V1 = 1
HID_V2 = 2


def is_debuglink(dev: Dict[str, Any]) -> Optional[bool]:
    """
    Tell apart the debug link and the normal interface of an enumerated HID device.

    :param dev: A device dictionary returned by ``hid.enumerate``
    :return: ``True`` for debug link, ``False`` for the normal interface, ``None`` for anything else
    """
    if dev.get("usage_page") == DEBUGLINK_USAGE or dev.get("interface_number") == DEBUGLINK_INTERFACE:
        return True
    if dev.get("usage_page") == WIRELINK_USAGE or dev.get("interface_number") == WIRELINK_INTERFACE:
        return False
    return None


class HidTransport(Transport):
    PATH_PREFIX = "hid"

    def __init__(self, descriptor: DeviceDescriptor, **kwargs: Any) -> None:
        super(HidTransport, self).__init__(descriptor, **kwargs)
        self.handle: Optional[Any] = None
        self.hid_version: Optional[int] = None

    @classmethod
    def enumerate(cls, debug: Optional[bool] = None) -> List[DeviceDescriptor]:
        devices = []
        for dev in hid.enumerate(0, 0):
            model = derive_model((dev["vendor_id"], dev["product_id"]))
            if model is None:
                continue
            dev_debug = is_debuglink(dev)
            if dev_debug is None or (debug is not None and dev_debug != debug):
                continue
            devices.append(DeviceDescriptor(
                model=model,
                vendor_id=dev["vendor_id"],
                product_id=dev["product_id"],
                path="{}:{}".format(cls.PATH_PREFIX, dev["path"].decode()),
                serial_number=dev.get("serial_number") or None,
                debug=dev_debug,
            ))
        return devices

    def _hid_path(self) -> bytes:
        return self.get_path()[len(self.PATH_PREFIX) + 1:].encode()

    def _open(self) -> None:
        self.handle = hid.device()
        try:
            self.handle.open_path(self._hid_path())
        except (IOError, OSError) as e:
            self.handle = None
            # hidapi reports every failure the same way, a device that is still listed was refused
            if any(d.path == self.get_path() for d in self.enumerate()):
                raise DeviceAccessDeniedError("Unable to open {}: {}".format(self.get_path(), e))
            raise DeviceNotFoundError("Unable to open {}: {}".format(self.get_path(), e))

        # The path can be reused by a different device after a reconnect
        serial = self.handle.get_serial_number_string() or None
        if self.descriptor.serial_number is not None and serial != self.descriptor.serial_number:
            self.handle.close()
            self.handle = None
            raise DeviceNotFoundError("Unexpected device {} on path {}".format(serial, self.get_path()))

        try:
            self.hid_version = self.probe_hid_version()
        except TransportIOError:
            self._close()
            raise
        LOG.debug("%s speaks HID version %d", self.get_path(), self.hid_version)

    def probe_hid_version(self) -> int:
        """
        Find out whether the device expects a report id in front of every packet.

        :return: :data:`HID_V2` if it does, :data:`HID_V1` otherwise
        """
        assert self.handle is not None
        if self.handle.write([0, 63] + [0xFF] * 63) == 65:
            return HID_V2
        if self.handle.write([63] + [0xFF] * 63) == 64:
            return HID_V1
        raise TransportIOError("Unknown HID version")

    def _close(self) -> None:
        if self.handle is not None:
            self.handle.close()
        self.handle = None
        self.hid_version = None

    def _write(self, chunk: bytes) -> None:
        assert self.handle is not None
        data = bytearray(chunk)
        if self.hid_version == HID_V2:
            data = bytearray(b"\x00") + data
        try:
            written = self.handle.write(data)
        except (IOError, OSError, ValueError) as e:
            raise DeviceDisconnectedError("Writing to {} failed: {}".format(self.get_path(), e))
        if written < 0:
            raise TransportIOError("Writing to {} failed".format(self.get_path()))

    def _read(self, timeout_ms: int) -> bytes:
        assert self.handle is not None
        try:
            chunk = self.handle.read(self.CHUNK_SIZE, timeout_ms)
        except (IOError, OSError, ValueError) as e:
            raise DeviceDisconnectedError("Reading from {} failed: {}".format(self.get_path(), e))
        if not chunk:
            raise TransportTimeoutError("No answer from {} within {} ms".format(self.get_path(), timeout_ms))
        if len(chunk) != self.CHUNK_SIZE:
            raise TransportIOError("Unexpected chunk size: {}".format(len(chunk)))
        return bytes(chunk)
