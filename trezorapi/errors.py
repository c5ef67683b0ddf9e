"""
Errors and Error Codes
**********************

trezorapi has several possible Exceptions with corresponding error codes.

Every exception raised by the transports, the codec, :class:`~trezorapi.session.Session`
and :class:`~trezorapi.signer.Signer` is a subclass of :class:`HWWError`.
The command line tool converts these exceptions into a dictionary containing the error message and error code.
These look like ``{"error": "<msg>", "code": <code>}``.

The exceptions are grouped the way callers need to react to them:

- :class:`TransportError`: the device link failed. The session is unusable, reconnect.
- :class:`DecodeError`: the message stream is desynchronized. The session is unusable, reconnect.
- :class:`ProtocolError`: the device refused or answered out of turn. The session stays usable.
- :class:`ActionCanceledError`: the user cancelled. Not a bug.
"""

from typing import Any, Dict, Iterator, Optional
from contextlib import contextmanager

# Error codes
NO_DEVICE_TYPE = -1 #: No device was found or specified
MISSING_ARGUMENTS = -2 #: Arguments are missing
DEVICE_CONN_ERROR = -3 #: Error connecting to or talking with the device
INVALID_TX = -5 #: Transaction is invalid
BAD_ARGUMENT = -7 #: Bad, malformed, or conflicting argument was provided
DEVICE_NOT_READY = -12 #: Device is not ready
UNKNOWN_ERROR = -13 #: An unknown error occurred
ACTION_CANCELED = -14 #: Action was canceled by the user
DEVICE_BUSY = -15 #: Device is busy
HELP_TEXT = -17 #: Help text was requested by the user
DECODE_ERROR = -19 #: A message from the device could not be decoded
PROTOCOL_ERROR = -20 #: The device reported a failure or answered out of turn
SESSION_INVALID = -21 #: The session can no longer be used

# Exceptions
class HWWError(Exception):
    """
    Generic exception type produced by trezorapi
    Subclassed by specific Errors to have Exceptions that have specific error codes.

    Contains a message and error code.
    """
    def __init__(self, msg: str, code: int) -> None:
        """
        Create an exception with the message and error code

        :param msg: The error message
        :param code: The error code
        """
        Exception.__init__(self)
        self.code = code
        self.msg = msg

    def get_code(self) -> int:
        """
        Get the error code for this Error

        :return: The error code
        """
        return self.code

    def get_msg(self) -> str:
        """
        Get the error message for this Error

        :return: The error message
        """
        return self.msg

    def __str__(self) -> str:
        return self.msg

class BadArgumentError(HWWError):
    """
    :class:`HWWError` for :data:`BAD_ARGUMENT`
    """
    def __init__(self, msg: str):
        """
        :param msg: The error message
        """
        HWWError.__init__(self, msg, BAD_ARGUMENT)

class ActionCanceledError(HWWError):
    """
    :class:`HWWError` for :data:`ACTION_CANCELED`
    """
    def __init__(self, msg: str):
        """
        :param msg: The error message
        """
        HWWError.__init__(self, msg, ACTION_CANCELED)

class DeviceBusyError(HWWError):
    """
    :class:`HWWError` for :data:`DEVICE_BUSY`

    Raised when a transport is opened twice or a session is used from two places at once.
    """
    def __init__(self, msg: str):
        """
        :param msg: The error message
        """
        HWWError.__init__(self, msg, DEVICE_BUSY)

# Transport errors

class TransportError(HWWError):
    """
    :class:`HWWError` for :data:`DEVICE_CONN_ERROR`

    Base class of every error raised by the USB link. Never retried by the library.
    """
    def __init__(self, msg: str):
        """
        :param msg: The error message
        """
        HWWError.__init__(self, msg, DEVICE_CONN_ERROR)

class DeviceNotFoundError(TransportError):
    """The device to connect to was not found."""

class DeviceAccessDeniedError(TransportError):
    """The operating system refused to open the device."""

class TransportIOError(TransportError):
    """Reading from or writing to the device failed."""

class TransportTimeoutError(TransportError):
    """The device did not answer before the timeout expired."""

class DeviceDisconnectedError(TransportError):
    """The device went away while it was in use."""

class NoDeviceFoundError(TransportError):
    """
    No device was plugged in.
    """
    def __init__(self, msg: str = "Trezor device not found"):
        TransportError.__init__(self, msg)
        self.code = NO_DEVICE_TYPE

class DeviceNotUniqueError(TransportError):
    """More than one device matched."""
    def __init__(self, msg: str = "multiple Trezor devices found"):
        TransportError.__init__(self, msg)

# Decode errors

class DecodeError(HWWError):
    """
    :class:`HWWError` for :data:`DECODE_ERROR`

    The bytes received from the device do not form a valid message.
    """
    def __init__(self, msg: str):
        """
        :param msg: The error message
        """
        HWWError.__init__(self, msg, DECODE_ERROR)

class MalformedHeaderError(DecodeError):
    """A packet does not start with the expected magic marker."""

class UnknownMessageTypeError(DecodeError):
    """
    The header names a message type outside the catalog.
    """
    def __init__(self, message_type: int):
        DecodeError.__init__(self, "received invalid message type: {}".format(message_type))
        self.message_type = message_type

class LengthMismatchError(DecodeError):
    """The declared payload length and the received bytes disagree."""

class TruncatedPayloadError(DecodeError):
    """Fewer bytes arrived than the header declared."""

# Protocol errors

class ProtocolError(HWWError):
    """
    :class:`HWWError` for :data:`PROTOCOL_ERROR`

    The exchange failed, but the session can still be used.
    """
    def __init__(self, msg: str):
        """
        :param msg: The error message
        """
        HWWError.__init__(self, msg, PROTOCOL_ERROR)

class FailureError(ProtocolError):
    """
    A ``Failure`` message was returned by the device.
    """
    def __init__(self, failure_code: Optional[int], message: Optional[str]):
        """
        :param failure_code: The ``FailureType`` reported by the device
        :param message: The message reported by the device
        """
        ProtocolError.__init__(self, 'failure received: code={} message="{}"'.format(failure_code, message or ""))
        self.failure_code = failure_code
        self.failure_message = message

class PinError(FailureError):
    """The PIN was rejected, cancelled or missing."""

class UnexpectedMessageError(ProtocolError):
    """
    The device answered with a message that does not fit the current request.
    """
    def __init__(self, msg: Any, expected: str = ""):
        text = "received unexpected message type: {}".format(type(msg).__name__)
        if expected:
            text += " (expected {})".format(expected)
        ProtocolError.__init__(self, text)
        self.response = msg

class MalformedTxRequestError(ProtocolError):
    """The device produced an invalid TxRequest message."""

class TxRequestInvalidIndexError(ProtocolError):
    """
    The device referenced a non-existing input or output index.
    """
    def __init__(self, kind: str, index: int):
        ProtocolError.__init__(self, "device referenced non-existing {} index: {}".format(kind, index))
        self.index = index

class TxRequestUnknownTxidError(ProtocolError):
    """
    The device referenced a transaction the host does not know.
    """
    def __init__(self, txid: bytes):
        ProtocolError.__init__(self, "device referenced unknown TXID: {}".format(txid.hex()))
        self.txid = txid

# Session misuse

class SessionStateError(HWWError):
    """
    :class:`HWWError` for :data:`DEVICE_NOT_READY`

    The session is not in a state that allows the requested operation.
    """
    def __init__(self, msg: str):
        HWWError.__init__(self, msg, DEVICE_NOT_READY)

class HandshakeError(SessionStateError):
    """The feature query after opening the device failed."""

class SessionInvalidatedError(HWWError):
    """
    :class:`HWWError` for :data:`SESSION_INVALID`

    A transport or decode error closed the session. Reconnect to continue.
    """
    def __init__(self, msg: str):
        HWWError.__init__(self, msg, SESSION_INVALID)

@contextmanager
def handle_errors(
    msg: Optional[str] = None,
    result: Optional[Dict[str, Any]] = None,
    code: int = UNKNOWN_ERROR,
    debug: bool = False,
) -> Iterator[None]:
    """
    Context manager to catch all Exceptions and HWWErrors to return them as dictionaries containing the error message and code.

    :param msg: Error message prefix. Attached to the beginning of each error message
    :param result: The dictionary to put the resulting error in
    :param code: The default error code to use for Exceptions
    :param debug: Whether to also print out the traceback for debugging purposes
    """
    if result is None:
        result = {}

    if msg is None:
        msg = ""
    else:
        msg = msg + " "

    try:
        yield

    except HWWError as e:
        result['error'] = msg + e.get_msg()
        result['code'] = e.get_code()
    except Exception as e:
        result['error'] = msg + str(e)
        result['code'] = code
        if debug:
            import traceback
            traceback.print_exc()
