"""
Wire Codec
**********

Converts protocol messages to and from the fixed-size packets exchanged with the device.

A message is serialized to its protobuf payload and prefixed with an 8 byte header::

    "##" | message type (u16, big endian) | payload length (u32, big endian)

The header and payload are then cut into pieces of ``chunk_size - 1`` bytes.
Each piece is prefixed with the report marker ``?`` and zero padded to ``chunk_size``.
So the first packet starts with ``?##`` and every continuation packet only with ``?``.
"""

import logging
import struct

from typing import Callable, Iterable, List, Tuple

from google.protobuf.message import DecodeError as ProtobufDecodeError, Message

from . import messages
from .common import CHUNK_SIZE
from .errors import (
    DecodeError,
    LengthMismatchError,
    MalformedHeaderError,
    TruncatedPayloadError,
    UnknownMessageTypeError,
)

LOG = logging.getLogger(__name__)

REPORT_MARKER = b"?"
HEADER_MAGIC = b"##"
HEADER_FORMAT = ">2sHL"
HEADER_LEN = struct.calcsize(HEADER_FORMAT)

# The first packet carries the marker and the header before any payload
FIRST_HEADER_LEN = len(REPORT_MARKER) + HEADER_LEN


def first_packet_capacity(chunk_size: int = CHUNK_SIZE) -> int:
    """Number of payload bytes that fit in the first packet of a message"""
    return chunk_size - FIRST_HEADER_LEN


def packets_needed(payload_len: int, chunk_size: int = CHUNK_SIZE) -> int:
    """
    Number of packets a payload of the given length is split into.

    :param payload_len: Length of the serialized message in bytes
    :param chunk_size: Size of one packet
    """
    remaining = payload_len - first_packet_capacity(chunk_size)
    if remaining <= 0:
        return 1
    per_packet = chunk_size - len(REPORT_MARKER)
    return 1 + (remaining + per_packet - 1) // per_packet


def encode(msg: Message, chunk_size: int = CHUNK_SIZE) -> List[bytes]:
    """
    Encode a message into wire packets.

    :param msg: The message to send
    :param chunk_size: Size of one packet
    :return: The packets, in the order they must be written
    """
    msg_type = messages.get_type(msg)
    payload = msg.SerializeToString()
    data = struct.pack(HEADER_FORMAT, HEADER_MAGIC, msg_type, len(payload)) + payload

    packets = []
    step = chunk_size - len(REPORT_MARKER)
    for offset in range(0, len(data), step):
        chunk = REPORT_MARKER + data[offset:offset + step]
        packets.append(chunk.ljust(chunk_size, b"\x00"))
    LOG.debug("encoded %s into %d packets", messages.format_message(msg), len(packets))
    return packets


def _check_size(packet: bytes, chunk_size: int) -> None:
    if len(packet) < chunk_size:
        raise TruncatedPayloadError("packet of {} bytes, expected {}".format(len(packet), chunk_size))
    if len(packet) > chunk_size:
        raise LengthMismatchError("packet of {} bytes, expected {}".format(len(packet), chunk_size))


def parse_header(packet: bytes, chunk_size: int = CHUNK_SIZE) -> Tuple[int, int]:
    """
    Parse the header in the first packet of a message.

    :param packet: The first packet
    :param chunk_size: Size of one packet
    :return: The message type and the declared payload length
    """
    _check_size(packet, chunk_size)
    if packet[:1] != REPORT_MARKER:
        raise MalformedHeaderError("bad report marker {!r}".format(packet[:1]))
    magic, msg_type, length = struct.unpack_from(HEADER_FORMAT, packet, len(REPORT_MARKER))
    if magic != HEADER_MAGIC:
        raise MalformedHeaderError("bad header magic {!r}".format(magic))
    if messages.get_class(msg_type) is None:
        raise UnknownMessageTypeError(msg_type)
    return msg_type, length


def decode(packets: Iterable[bytes], chunk_size: int = CHUNK_SIZE) -> Message:
    """
    Reassemble and decode a message from its wire packets.

    The packets are consumed strictly in the given order.

    :param packets: The packets of exactly one message
    :param chunk_size: Size of one packet
    :return: The decoded message
    :raises DecodeError: if the packets do not form exactly one valid message
    """
    it = iter(packets)
    try:
        first = next(it)
    except StopIteration:
        raise TruncatedPayloadError("no packets")
    msg_type, length = parse_header(first, chunk_size)

    data = bytearray(first[FIRST_HEADER_LEN:])
    for packet in it:
        if len(data) >= length:
            raise LengthMismatchError("more packets than the declared length of {} bytes".format(length))
        _check_size(packet, chunk_size)
        if packet[:1] != REPORT_MARKER:
            raise MalformedHeaderError("bad continuation marker {!r}".format(packet[:1]))
        data.extend(packet[len(REPORT_MARKER):])

    if len(data) < length:
        raise TruncatedPayloadError("received {} of {} bytes".format(len(data), length))

    cls = messages.get_class(msg_type)
    if cls is None:
        raise UnknownMessageTypeError(msg_type)
    msg = cls()
    try:
        msg.ParseFromString(bytes(data[:length]))
    except ProtobufDecodeError as e:
        raise DecodeError("invalid {} payload: {}".format(cls.DESCRIPTOR.name, e))
    LOG.debug("decoded %s", messages.format_message(msg))
    return msg


def read_message(read_chunk: Callable[[], bytes], chunk_size: int = CHUNK_SIZE) -> Message:
    """
    Read one message from a packet source.

    The first packet is read and its header parsed to learn how many continuation packets follow.

    :param read_chunk: Callable returning the next packet from the device
    :param chunk_size: Size of one packet
    :return: The decoded message
    """
    first = read_chunk()
    _, length = parse_header(first, chunk_size)
    packets = [first]
    for _ in range(packets_needed(length, chunk_size) - 1):
        packets.append(read_chunk())
    return decode(packets, chunk_size)
