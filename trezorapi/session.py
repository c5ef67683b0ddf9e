# This file is part of the Trezor project.
#
# Copyright (C) 2012-2018 SatoshiLabs and contributors
#
# This library is free software: you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License version 3
# as published by the Free Software Foundation.
#
# This library is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Lesser General Public License for more details.
#
# You should have received a copy of the License along with this library.
# If not, see <https://www.gnu.org/licenses/lgpl-3.0.html>.

"""
Sessions
********

A :class:`Session` owns one opened :class:`~trezorapi.transport.Transport` and runs the request/response protocol over it.

Interaction requests from the device are not handled with callbacks.
:meth:`Session.exchange` and :meth:`Session.resolve` return a :class:`Prompt` instead of the final response,
and the caller answers it before the exchange continues::

    with Session(transport) as session:
        resp = session.exchange(messages.GetAddress(address_n=path, coin_name="Bitcoin"))
        while isinstance(resp, Prompt):
            if isinstance(resp, PinPrompt):
                resp = session.resolve(resp, ask_user_for_pin())
            else:
                resp = session.resolve(resp, None)

:meth:`Session.call` does the same with a UI object from :mod:`trezorapi.ui`.
"""

import logging
import threading
import warnings

from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional, Type, TypeVar, Union

import semver

from google.protobuf.message import Message
from mnemonic import Mnemonic

from . import codec, messages
from .common import MINIMUM_FIRMWARE_VERSION, VENDORS
from .errors import (
    ActionCanceledError,
    BadArgumentError,
    DecodeError,
    DeviceBusyError,
    FailureError,
    HandshakeError,
    PinError,
    SessionInvalidatedError,
    SessionStateError,
    TransportError,
    UnexpectedMessageError,
)
from .transport import Transport
from .ui import ButtonOnlyUI

LOG = logging.getLogger(__name__)

MAX_PASSPHRASE_LENGTH = 50

OUTDATED_FIRMWARE_WARNING = """
Your Trezor firmware is out of date. Update it with the Trezor Suite,
or visit https://trezor.io/
""".strip()

PIN_FAILURES = (
    messages.FailureType.PinInvalid,
    messages.FailureType.PinCancelled,
    messages.FailureType.PinExpected,
)

M = TypeVar("M", bound=Message)


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    READY = "ready"
    BUSY = "busy"
    CLOSED = "closed"


class Prompt(object):
    """
    A request for user interaction sent by the device in the middle of an exchange.

    :ivar request: The message the device sent
    """
    def __init__(self, request: Message) -> None:
        self.request = request

    def ack(self, value: Any) -> Message:
        """
        Build the message answering this prompt.

        :raises BadArgumentError: if the value is not a valid answer
        """
        raise NotImplementedError

    def ask(self, ui: Any) -> Any:
        """Get the answer to this prompt from a UI object"""
        raise NotImplementedError

    def __repr__(self) -> str:
        return "<{}>".format(type(self).__name__)


class ButtonPrompt(Prompt):
    """The device waits for a button press. Resolve with ``None``."""

    @property
    def code(self) -> Optional[int]:
        return self.request.code if self.request.HasField("code") else None

    def ack(self, value: Any) -> Message:
        return messages.ButtonAck()

    def ask(self, ui: Any) -> Any:
        ui.button_request(self.code)
        return None


class PinPrompt(Prompt):
    """
    The device shows a scrambled PIN matrix.
    Resolve with the digits of the matrix positions, as a string.
    """

    @property
    def type(self) -> Optional[int]:
        return self.request.type if self.request.HasField("type") else None

    def ack(self, value: Any) -> Message:
        if not isinstance(value, str) or not value.isdigit():
            raise BadArgumentError("Non-numeric PIN provided")
        return messages.PinMatrixAck(pin=value)

    def ask(self, ui: Any) -> Any:
        return ui.get_pin(self.type)


class PassphrasePrompt(Prompt):
    """
    The device asks for the passphrase.
    Resolve with the passphrase, or ``None`` when it is entered on the device.
    """

    @property
    def on_device(self) -> bool:
        return bool(self.request.on_device)

    def ack(self, value: Any) -> Message:
        if self.on_device:
            return messages.PassphraseAck()
        if not isinstance(value, str):
            raise BadArgumentError("Passphrase must be a string")
        passphrase = Mnemonic.normalize_string(value)
        if len(passphrase) > MAX_PASSPHRASE_LENGTH:
            raise BadArgumentError("Passphrase too long")
        return messages.PassphraseAck(passphrase=passphrase)

    def ask(self, ui: Any) -> Any:
        if self.on_device:
            return None
        return ui.get_passphrase()


class WordPrompt(Prompt):
    """The device asks for one recovery word. Resolve with the word."""

    @property
    def type(self) -> Optional[int]:
        return self.request.type if self.request.HasField("type") else None

    def ack(self, value: Any) -> Message:
        if not isinstance(value, str):
            raise BadArgumentError("Word must be a string")
        return messages.WordAck(word=value.strip().lower())

    def ask(self, ui: Any) -> Any:
        return ui.get_word(self.type)


PROMPTS = {
    messages.MessageType.ButtonRequest.name: ButtonPrompt,
    messages.MessageType.PinMatrixRequest.name: PinPrompt,
    messages.MessageType.PassphraseRequest.name: PassphrasePrompt,
    messages.MessageType.WordRequest.name: WordPrompt,
}

Response = Union[Message, Prompt]


class Session(object):
    """
    One connection to a device.

    A session goes through ``DISCONNECTED -> HANDSHAKING -> READY -> {BUSY -> READY}* -> CLOSED``.
    A transport or decode error closes it for good. A ``Failure`` from the device only fails the current exchange.

    :param transport: The transport to use, not opened yet
    :param state: Passphrase state remembered from an earlier session
    :param read_timeout_ms: Override the transport read timeout
    """

    def __init__(self, transport: Transport, state: Optional[bytes] = None, read_timeout_ms: Optional[int] = None) -> None:
        LOG.info("creating session for device: {}".format(transport.get_path()))
        self.transport = transport
        self.state_id = state
        self.read_timeout_ms = read_timeout_ms
        self.state = SessionState.DISCONNECTED
        self.features: Optional[Message] = None
        self._pending: Optional[Prompt] = None
        self._closed_by: Optional[Exception] = None
        self._lock = threading.Lock()

    # Lifecycle

    def open(self) -> None:
        """
        Open the transport and query the device features.

        :raises DeviceBusyError: if the transport is already in use
        :raises HandshakeError: if the device did not answer with the features of a known device
        """
        with self._exclusive():
            if self.state == SessionState.CLOSED:
                raise SessionInvalidatedError("Session is closed")
            if self.state != SessionState.DISCONNECTED:
                raise SessionStateError("Session is already open")
            if self.transport.is_open:
                raise DeviceBusyError("{} is already in use".format(self.transport.get_path()))

            self.state = SessionState.HANDSHAKING
            try:
                self.transport.open()
                features = self._send_and_read(messages.Initialize(state=self.state_id) if self.state_id else messages.Initialize())
            except (TransportError, DecodeError) as e:
                self._invalidate(e)
                raise
            if not isinstance(features, messages.Features):
                e = HandshakeError("Unexpected initial response: {}".format(messages.format_message(features)))
                self._invalidate(e)
                raise e
            if features.vendor not in VENDORS:
                e = HandshakeError("Unsupported device vendor: {}".format(features.vendor))
                self._invalidate(e)
                raise e
            self._set_features(features)
            self.state = SessionState.READY
            self.check_firmware_version()

    def close(self) -> None:
        """Close the session and release the transport. Closing twice does nothing."""
        if self.state == SessionState.CLOSED:
            return
        opened = self.state != SessionState.DISCONNECTED
        self.state = SessionState.CLOSED
        self._pending = None
        if opened:
            self.transport.close()
        LOG.info("session for %s closed", self.transport.get_path())

    def __enter__(self) -> "Session":
        if self.state == SessionState.DISCONNECTED:
            self.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # Exchanges

    def exchange(self, msg: Message) -> Response:
        """
        Send a message and read the answer.

        :param msg: The request
        :return: The response, or a :class:`Prompt` that must be resolved before the response arrives
        :raises FailureError: if the device answered with ``Failure``
        :raises ActionCanceledError: if the user cancelled on the device
        """
        with self._exclusive():
            self._check_ready()
            if self._pending is not None:
                raise SessionStateError("Resolve or cancel {!r} first".format(self._pending))
            return self._transact(msg)

    def resolve(self, prompt: Prompt, value: Any = None) -> Response:
        """
        Answer the pending prompt and read the next answer.

        :param prompt: The prompt returned by the last :meth:`exchange` or :meth:`resolve`
        :param value: The answer, see the prompt classes
        :return: The response, or the next :class:`Prompt`
        :raises BadArgumentError: if the value is not a valid answer. The prompt stays pending
        :raises PinError: if the device rejected the PIN
        """
        with self._exclusive():
            self._check_ready()
            if prompt is not self._pending:
                raise SessionStateError("{!r} is not the pending prompt".format(prompt))
            ack = prompt.ack(value)
            self._pending = None
            return self._transact(ack, pin=isinstance(prompt, PinPrompt))

    def cancel(self) -> None:
        """
        Send ``Cancel`` and read the ``Failure`` the device answers with.

        Any pending prompt is dropped and the session is ready again afterwards.
        """
        with self._exclusive():
            self._check_ready()
            self._pending = None
            self.state = SessionState.BUSY
            try:
                resp = self._send_and_read(messages.Cancel())
            except (TransportError, DecodeError) as e:
                self._invalidate(e)
                raise
            self.state = SessionState.READY
            if not isinstance(resp, messages.Failure):
                raise UnexpectedMessageError(resp, "Failure")

    def call(self, msg: Message, ui: Any = None) -> Message:
        """
        Send a message and answer every prompt with ``ui``.

        If ``ui`` raises, the operation is cancelled on the device and the exception re-raised.

        :param msg: The request
        :param ui: A UI object, see :mod:`trezorapi.ui`. Without one, only button requests are answered
        :return: The final response
        """
        if ui is None:
            ui = ButtonOnlyUI()
        resp = self.exchange(msg)
        while isinstance(resp, Prompt):
            try:
                value = resp.ask(ui)
                ack = resp.ack(value)
            except Exception:
                if self.state not in (SessionState.CLOSED, SessionState.DISCONNECTED):
                    self.cancel()
                raise
            LOG.debug("answering %r with %s", resp, messages.format_message(ack))
            resp = self.resolve(resp, value)
        return resp

    def call_expect(self, msg: Message, expected: Type[M], ui: Any = None) -> M:
        """
        :meth:`call`, checking the type of the response.

        :raises UnexpectedMessageError: for any other response
        """
        resp = self.call(msg, ui)
        if not isinstance(resp, expected):
            raise UnexpectedMessageError(resp, expected.DESCRIPTOR.name)
        return resp

    # Features

    def refresh_features(self) -> Message:
        """Query the features again and update the cache"""
        features = self.call_expect(messages.GetFeatures(), messages.Features)
        self._set_features(features)
        return features

    def initialize(self) -> Message:
        """Send ``Initialize``, which also ends any flow running on the device, and update the cache"""
        msg = messages.Initialize(state=self.state_id) if self.state_id else messages.Initialize()
        features = self.call_expect(msg, messages.Features)
        self._set_features(features)
        return features

    def clear_session(self) -> Message:
        """Make the device forget the cached PIN and passphrase"""
        self.call_expect(messages.ClearSession(), messages.Success)
        self.state_id = None
        return self.refresh_features()

    def get_features(self) -> Message:
        """
        Get the features cached at the handshake or the last refresh.

        :raises SessionStateError: if the handshake has not completed
        """
        if self.features is None:
            raise SessionStateError("Session is {}, the handshake has not completed".format(self.state.value))
        return self.features

    @property
    def model(self) -> str:
        return self.get_features().model or "1"

    @property
    def version(self) -> semver.VersionInfo:
        features = self.get_features()
        return semver.VersionInfo(
            features.major_version,
            features.minor_version,
            features.patch_version,
        )

    @property
    def pending_prompt(self) -> Optional[Prompt]:
        return self._pending

    def is_outdated(self) -> bool:
        if self.get_features().bootloader_mode:
            return False
        required = MINIMUM_FIRMWARE_VERSION.get(self.model)
        if required is None:
            return False
        return self.version < semver.VersionInfo.parse(required)

    def check_firmware_version(self) -> None:
        if self.is_outdated():
            warnings.warn(OUTDATED_FIRMWARE_WARNING, stacklevel=2)

    # Internals

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise DeviceBusyError("Session is in use by another caller")
        try:
            yield
        finally:
            self._lock.release()

    def _check_ready(self) -> None:
        if self.state == SessionState.CLOSED:
            reason = ": {}".format(self._closed_by) if self._closed_by is not None else ""
            raise SessionInvalidatedError("Session is closed{}".format(reason))
        if self.state not in (SessionState.READY, SessionState.BUSY):
            raise SessionStateError("Session is {}, the handshake has not completed".format(self.state.value))

    def _set_features(self, features: Message) -> None:
        self.features = features
        LOG.debug("device features: model %s, firmware %d.%d.%d", features.model or "1",
                  features.major_version, features.minor_version, features.patch_version)

    def _invalidate(self, e: Exception) -> None:
        LOG.warning("closing session for %s: %s", self.transport.get_path(), e)
        self._closed_by = e
        self.state = SessionState.CLOSED
        self._pending = None
        try:
            self.transport.close()
        except TransportError as close_error:
            LOG.debug("closing transport failed: %s", close_error)

    def _send_and_read(self, msg: Message) -> Message:
        packets = codec.encode(msg, self.transport.CHUNK_SIZE)
        LOG.debug("sending %s", messages.format_message(msg))
        for packet in packets:
            self.transport.write_chunk(packet)
        resp = codec.read_message(lambda: self.transport.read_chunk(self.read_timeout_ms), self.transport.CHUNK_SIZE)
        LOG.debug("received %s", messages.format_message(resp))
        return resp

    def _transact(self, msg: Message, pin: bool = False) -> Response:
        # Check the message can be sent before touching the device
        messages.get_type(msg)
        self.state = SessionState.BUSY
        try:
            resp = self._send_and_read(msg)
            while isinstance(resp, messages.PassphraseStateRequest):
                self.state_id = resp.state
                resp = self._send_and_read(messages.PassphraseStateAck())
        except (TransportError, DecodeError) as e:
            self._invalidate(e)
            raise

        if isinstance(resp, messages.Failure):
            self.state = SessionState.READY
            if resp.code == messages.FailureType.ActionCancelled:
                raise ActionCanceledError(resp.message or "Action cancelled by user")
            if pin and resp.code in PIN_FAILURES:
                raise PinError(resp.code, resp.message)
            raise FailureError(resp.code, resp.message)

        prompt_class = PROMPTS.get(resp.DESCRIPTOR.name)
        if prompt_class is not None:
            self._pending = prompt_class(resp)
            return self._pending

        self.state = SessionState.READY
        return resp
