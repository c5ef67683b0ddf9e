"""
WebUSB Transport
****************

Transport for Trezor One with firmware 1.7.0 or newer and Trezor Model T, using libusb1.

Every device offers a normal and a debug link interface, so it is listed once for each.
"""

import atexit
import logging

from typing import Any, List, Optional

import usb1

from . import DeviceDescriptor, Transport
from ..common import WRITE_TIMEOUT_MS, derive_model
from ..errors import (
    DeviceAccessDeniedError,
    DeviceDisconnectedError,
    DeviceNotFoundError,
    TransportIOError,
    TransportTimeoutError,
)

LOG = logging.getLogger(__name__)

INTERFACE = 0
ENDPOINT = 1
DEBUG_INTERFACE = 1
DEBUG_ENDPOINT = 2
READ_ENDPOINT_MASK = 0x80

CONFIG_ID = 0
ALT_SETTING_ID = 0

DEBUG_SUFFIX = ":debug"


def dev_to_str(dev: Any) -> str:
    return "{:03d}:{}".format(dev.getBusNumber(), dev.getDeviceAddress())


def is_vendor_class(dev: Any) -> bool:
    return dev[CONFIG_ID][INTERFACE][ALT_SETTING_ID].getClass() == usb1.libusb1.LIBUSB_CLASS_VENDOR_SPEC


class WebUsbTransport(Transport):
    PATH_PREFIX = "webusb"
    context: Optional[Any] = None

    def __init__(self, descriptor: DeviceDescriptor, write_timeout_ms: int = WRITE_TIMEOUT_MS, **kwargs: Any) -> None:
        super(WebUsbTransport, self).__init__(descriptor, **kwargs)
        self.write_timeout_ms = write_timeout_ms
        self.interface = DEBUG_INTERFACE if descriptor.debug else INTERFACE
        self.endpoint = DEBUG_ENDPOINT if descriptor.debug else ENDPOINT
        self.handle: Optional[Any] = None

    @classmethod
    def get_context(cls) -> Any:
        if cls.context is None:
            cls.context = usb1.USBContext()
            cls.context.open()
            atexit.register(cls.context.close)
        return cls.context

    @classmethod
    def enumerate(cls, debug: Optional[bool] = None) -> List[DeviceDescriptor]:
        devices = []
        for dev in cls.get_context().getDeviceIterator(skip_on_error=True):
            model = derive_model((dev.getVendorID(), dev.getProductID()))
            if model is None:
                continue
            try:
                if not is_vendor_class(dev):
                    continue
            except (usb1.USBError, IndexError) as e:
                LOG.debug("skipping %s: %s", dev_to_str(dev), e)
                continue
            path = "{}:{}".format(cls.PATH_PREFIX, dev_to_str(dev))
            for dev_debug in (False, True):
                if debug is not None and dev_debug != debug:
                    continue
                devices.append(DeviceDescriptor(
                    model=model,
                    vendor_id=dev.getVendorID(),
                    product_id=dev.getProductID(),
                    path=path + DEBUG_SUFFIX if dev_debug else path,
                    debug=dev_debug,
                ))
        return devices

    def _find_device(self) -> Any:
        location = self.get_path()[len(self.PATH_PREFIX) + 1:]
        if location.endswith(DEBUG_SUFFIX):
            location = location[:-len(DEBUG_SUFFIX)]
        for dev in self.get_context().getDeviceIterator(skip_on_error=True):
            if dev_to_str(dev) != location:
                continue
            # Another device can take over the address after a reconnect
            if derive_model((dev.getVendorID(), dev.getProductID())) != self.descriptor.model:
                break
            return dev
        raise DeviceNotFoundError("{} device not found".format(self.get_path()))

    def _open(self) -> None:
        dev = self._find_device()
        try:
            self.handle = dev.open()
        except usb1.USBErrorAccess as e:
            raise DeviceAccessDeniedError("Unable to open {}: {}".format(self.get_path(), e))
        except (usb1.USBErrorNoDevice, usb1.USBErrorNotFound) as e:
            raise DeviceNotFoundError("Unable to open {}: {}".format(self.get_path(), e))
        except usb1.USBError as e:
            raise TransportIOError("Unable to open {}: {}".format(self.get_path(), e))

        try:
            self.handle.claimInterface(self.interface)
        except usb1.USBErrorBusy as e:
            self.handle.close()
            self.handle = None
            raise DeviceAccessDeniedError("{} is claimed by another program: {}".format(self.get_path(), e))
        except usb1.USBError as e:
            self.handle.close()
            self.handle = None
            raise TransportIOError("Unable to claim {}: {}".format(self.get_path(), e))

    def _close(self) -> None:
        if self.handle is None:
            return
        try:
            self.handle.releaseInterface(self.interface)
        except usb1.USBError as e:
            LOG.debug("releasing interface of %s failed: %s", self.get_path(), e)
        finally:
            self.handle.close()
            self.handle = None

    def _write(self, chunk: bytes) -> None:
        assert self.handle is not None
        try:
            self.handle.interruptWrite(self.endpoint, chunk, timeout=self.write_timeout_ms)
        except usb1.USBErrorTimeout:
            raise TransportTimeoutError("Writing to {} timed out".format(self.get_path()))
        except usb1.USBErrorNoDevice:
            raise DeviceDisconnectedError("{} was disconnected".format(self.get_path()))
        except usb1.USBError as e:
            raise TransportIOError("Writing to {} failed: {}".format(self.get_path(), e))

    def _read(self, timeout_ms: int) -> bytes:
        assert self.handle is not None
        endpoint = READ_ENDPOINT_MASK | self.endpoint
        try:
            chunk = self.handle.interruptRead(endpoint, self.CHUNK_SIZE, timeout=timeout_ms)
        except usb1.USBErrorTimeout:
            raise TransportTimeoutError("No answer from {} within {} ms".format(self.get_path(), timeout_ms))
        except usb1.USBErrorNoDevice:
            raise DeviceDisconnectedError("{} was disconnected".format(self.get_path()))
        except usb1.USBError as e:
            raise TransportIOError("Reading from {} failed: {}".format(self.get_path(), e))
        if len(chunk) != self.CHUNK_SIZE:
            raise TransportIOError("Unexpected chunk size: {}".format(len(chunk)))
        return bytes(chunk)
