"""
Protocol Messages
*****************

The closed catalog of messages the device understands.

Every message is a protobuf message class built at import time from the declarations below.
The classes are available as attributes of this module, e.g. ``messages.Initialize()``.
The wire id of each message is given by :class:`MessageType`; a message class that has no
entry there (``TxInputType``, ``HDNodeType``, ...) can only travel inside another message.
"""

import logging

from enum import IntEnum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import Message

LOG = logging.getLogger(__name__)

PACKAGE = "trezorapi"


class MessageType(IntEnum):
    Initialize = 0
    Ping = 1
    Success = 2
    Failure = 3
    ChangePin = 4
    WipeDevice = 5
    GetEntropy = 9
    Entropy = 10
    GetPublicKey = 11
    PublicKey = 12
    ResetDevice = 14
    SignTx = 15
    Features = 17
    PinMatrixRequest = 18
    PinMatrixAck = 19
    Cancel = 20
    TxRequest = 21
    TxAck = 22
    ClearSession = 24
    ApplySettings = 25
    ButtonRequest = 26
    ButtonAck = 27
    ApplyFlags = 28
    GetAddress = 29
    Address = 30
    BackupDevice = 34
    EntropyRequest = 35
    EntropyAck = 36
    SignMessage = 38
    VerifyMessage = 39
    MessageSignature = 40
    PassphraseRequest = 41
    PassphraseAck = 42
    RecoveryDevice = 45
    WordRequest = 46
    WordAck = 47
    GetFeatures = 55
    PassphraseStateRequest = 77
    PassphraseStateAck = 78


class FailureType(IntEnum):
    UnexpectedMessage = 1
    ButtonExpected = 2
    DataError = 3
    ActionCancelled = 4
    PinExpected = 5
    PinCancelled = 6
    PinInvalid = 7
    InvalidSignature = 8
    ProcessError = 9
    NotEnoughFunds = 10
    NotInitialized = 11
    PinMismatch = 12
    FirmwareError = 99


class ButtonRequestType(IntEnum):
    Other = 1
    FeeOverThreshold = 2
    ConfirmOutput = 3
    ResetDevice = 4
    ConfirmWord = 5
    WipeDevice = 6
    ProtectCall = 7
    SignTx = 8
    FirmwareCheck = 9
    Address = 10
    PublicKey = 11
    MnemonicWordCount = 12
    MnemonicInput = 13
    PassphraseType = 14
    UnknownDerivationPath = 15


class PinMatrixRequestType(IntEnum):
    Current = 1
    NewFirst = 2
    NewSecond = 3


class WordRequestType(IntEnum):
    Plain = 0
    Matrix9 = 1
    Matrix6 = 2


class InputScriptType(IntEnum):
    SPENDADDRESS = 0
    SPENDMULTISIG = 1
    EXTERNAL = 2
    SPENDWITNESS = 3
    SPENDP2SHWITNESS = 4


class OutputScriptType(IntEnum):
    PAYTOADDRESS = 0
    PAYTOSCRIPTHASH = 1
    PAYTOMULTISIG = 2
    PAYTOOPRETURN = 3
    PAYTOWITNESS = 4
    PAYTOP2SHWITNESS = 5


class RequestType(IntEnum):
    TXINPUT = 0
    TXOUTPUT = 1
    TXMETA = 2
    TXFINISHED = 3
    TXEXTRADATA = 4


_ENUMS = (
    FailureType,
    ButtonRequestType,
    PinMatrixRequestType,
    WordRequestType,
    InputScriptType,
    OutputScriptType,
    RequestType,
)

_F = descriptor_pb2.FieldDescriptorProto

_SCALARS = {
    "uint32": _F.TYPE_UINT32,
    "uint64": _F.TYPE_UINT64,
    "bool": _F.TYPE_BOOL,
    "string": _F.TYPE_STRING,
    "bytes": _F.TYPE_BYTES,
}

FieldKind = Union[str, Type[IntEnum]]
# (number, name, kind) or (number, name, kind, options)
FieldSpec = Union[Tuple[int, str, FieldKind], Tuple[int, str, FieldKind, Dict[str, Any]]]

REPEATED = {"repeated": True}
BITCOIN = {"default": "Bitcoin"}

# Types that only appear nested inside other messages
_STRUCTS: List[Tuple[str, Sequence[FieldSpec]]] = [
    ("HDNodeType", (
        (1, "depth", "uint32"),
        (2, "fingerprint", "uint32"),
        (3, "child_num", "uint32"),
        (4, "chain_code", "bytes"),
        (5, "private_key", "bytes"),
        (6, "public_key", "bytes"),
    )),
    ("HDNodePathType", (
        (1, "node", "HDNodeType"),
        (2, "address_n", "uint32", REPEATED),
    )),
    ("MultisigRedeemScriptType", (
        (1, "pubkeys", "HDNodePathType", REPEATED),
        (2, "signatures", "bytes", REPEATED),
        (3, "m", "uint32"),
    )),
    ("TxRequestDetailsType", (
        (1, "request_index", "uint32"),
        (2, "tx_hash", "bytes"),
        (3, "extra_data_len", "uint32"),
        (4, "extra_data_offset", "uint32"),
    )),
    ("TxRequestSerializedType", (
        (1, "signature_index", "uint32"),
        (2, "signature", "bytes"),
        (3, "serialized_tx", "bytes"),
    )),
    ("TxInputType", (
        (1, "address_n", "uint32", REPEATED),
        (2, "prev_hash", "bytes"),
        (3, "prev_index", "uint32"),
        (4, "script_sig", "bytes"),
        (5, "sequence", "uint32", {"default": "4294967295"}),
        (6, "script_type", InputScriptType),
        (7, "multisig", "MultisigRedeemScriptType"),
        (8, "amount", "uint64"),
    )),
    ("TxOutputBinType", (
        (1, "amount", "uint64"),
        (2, "script_pubkey", "bytes"),
    )),
    ("TxOutputType", (
        (1, "address", "string"),
        (2, "address_n", "uint32", REPEATED),
        (3, "amount", "uint64"),
        (4, "script_type", OutputScriptType),
        (5, "multisig", "MultisigRedeemScriptType"),
        (6, "op_return_data", "bytes"),
    )),
    ("TransactionType", (
        (1, "version", "uint32"),
        (2, "inputs", "TxInputType", REPEATED),
        (3, "bin_outputs", "TxOutputBinType", REPEATED),
        (4, "lock_time", "uint32"),
        (5, "outputs", "TxOutputType", REPEATED),
        (6, "inputs_cnt", "uint32"),
        (7, "outputs_cnt", "uint32"),
        (8, "extra_data", "bytes"),
        (9, "extra_data_len", "uint32"),
    )),
]

_MESSAGES: Dict[MessageType, Sequence[FieldSpec]] = {
    # Common
    MessageType.Success: (
        (1, "message", "string"),
    ),
    MessageType.Failure: (
        (1, "code", FailureType),
        (2, "message", "string"),
    ),
    MessageType.ButtonRequest: (
        (1, "code", ButtonRequestType),
        (2, "data", "string"),
    ),
    MessageType.ButtonAck: (),
    MessageType.PinMatrixRequest: (
        (1, "type", PinMatrixRequestType),
    ),
    MessageType.PinMatrixAck: (
        (1, "pin", "string"),
    ),
    MessageType.PassphraseRequest: (
        (1, "on_device", "bool"),
    ),
    MessageType.PassphraseAck: (
        (1, "passphrase", "string"),
        (2, "state", "bytes"),
    ),
    MessageType.PassphraseStateRequest: (
        (1, "state", "bytes"),
    ),
    MessageType.PassphraseStateAck: (),
    # Management
    MessageType.Initialize: (
        (1, "state", "bytes"),
        (2, "skip_passphrase", "bool"),
    ),
    MessageType.GetFeatures: (),
    MessageType.Features: (
        (1, "vendor", "string"),
        (2, "major_version", "uint32"),
        (3, "minor_version", "uint32"),
        (4, "patch_version", "uint32"),
        (5, "bootloader_mode", "bool"),
        (6, "device_id", "string"),
        (7, "pin_protection", "bool"),
        (8, "passphrase_protection", "bool"),
        (9, "language", "string"),
        (10, "label", "string"),
        (12, "initialized", "bool"),
        (13, "revision", "bytes"),
        (14, "bootloader_hash", "bytes"),
        (15, "imported", "bool"),
        (16, "pin_cached", "bool"),
        (17, "passphrase_cached", "bool"),
        (18, "firmware_present", "bool"),
        (19, "needs_backup", "bool"),
        (20, "flags", "uint32"),
        (21, "model", "string"),
        (22, "fw_major", "uint32"),
        (23, "fw_minor", "uint32"),
        (24, "fw_patch", "uint32"),
        (25, "fw_vendor", "string"),
        (26, "fw_vendor_keys", "bytes"),
        (27, "unfinished_backup", "bool"),
        (28, "no_backup", "bool"),
    ),
    MessageType.ClearSession: (),
    MessageType.ApplySettings: (
        (1, "language", "string"),
        (2, "label", "string"),
        (3, "use_passphrase", "bool"),
        (4, "homescreen", "bytes"),
        (6, "auto_lock_delay_ms", "uint32"),
        (7, "display_rotation", "uint32"),
    ),
    MessageType.ApplyFlags: (
        (1, "flags", "uint32"),
    ),
    MessageType.ChangePin: (
        (1, "remove", "bool"),
    ),
    MessageType.Ping: (
        (1, "message", "string"),
        (2, "button_protection", "bool"),
        (3, "pin_protection", "bool"),
        (4, "passphrase_protection", "bool"),
    ),
    MessageType.Cancel: (),
    MessageType.GetEntropy: (
        (1, "size", "uint32"),
    ),
    MessageType.Entropy: (
        (1, "entropy", "bytes"),
    ),
    MessageType.WipeDevice: (),
    MessageType.ResetDevice: (
        (1, "display_random", "bool"),
        (2, "strength", "uint32"),
        (3, "passphrase_protection", "bool"),
        (4, "pin_protection", "bool"),
        (5, "language", "string"),
        (6, "label", "string"),
        (7, "u2f_counter", "uint32"),
        (8, "skip_backup", "bool"),
        (9, "no_backup", "bool"),
    ),
    MessageType.BackupDevice: (),
    MessageType.EntropyRequest: (),
    MessageType.EntropyAck: (
        (1, "entropy", "bytes"),
    ),
    MessageType.RecoveryDevice: (
        (1, "word_count", "uint32"),
        (2, "passphrase_protection", "bool"),
        (3, "pin_protection", "bool"),
        (4, "language", "string"),
        (5, "label", "string"),
        (6, "enforce_wordlist", "bool"),
        (8, "type", "uint32"),
        (9, "u2f_counter", "uint32"),
        (10, "dry_run", "bool"),
    ),
    MessageType.WordRequest: (
        (1, "type", WordRequestType),
    ),
    MessageType.WordAck: (
        (1, "word", "string"),
    ),
    # Bitcoin
    MessageType.GetPublicKey: (
        (1, "address_n", "uint32", REPEATED),
        (2, "ecdsa_curve_name", "string"),
        (3, "show_display", "bool"),
        (4, "coin_name", "string", BITCOIN),
        (5, "script_type", InputScriptType),
    ),
    MessageType.PublicKey: (
        (1, "node", "HDNodeType"),
        (2, "xpub", "string"),
    ),
    MessageType.GetAddress: (
        (1, "address_n", "uint32", REPEATED),
        (2, "coin_name", "string", BITCOIN),
        (3, "show_display", "bool"),
        (4, "multisig", "MultisigRedeemScriptType"),
        (5, "script_type", InputScriptType),
    ),
    MessageType.Address: (
        (1, "address", "string"),
    ),
    MessageType.SignMessage: (
        (1, "address_n", "uint32", REPEATED),
        (2, "message", "bytes"),
        (3, "coin_name", "string", BITCOIN),
        (4, "script_type", InputScriptType),
    ),
    MessageType.MessageSignature: (
        (1, "address", "string"),
        (2, "signature", "bytes"),
    ),
    MessageType.VerifyMessage: (
        (1, "address", "string"),
        (2, "signature", "bytes"),
        (3, "message", "bytes"),
        (4, "coin_name", "string", BITCOIN),
    ),
    MessageType.SignTx: (
        (1, "outputs_count", "uint32"),
        (2, "inputs_count", "uint32"),
        (3, "coin_name", "string", BITCOIN),
        (4, "version", "uint32", {"default": "1"}),
        (5, "lock_time", "uint32"),
    ),
    MessageType.TxRequest: (
        (1, "request_type", RequestType),
        (2, "details", "TxRequestDetailsType"),
        (3, "serialized", "TxRequestSerializedType"),
    ),
    MessageType.TxAck: (
        (1, "tx", "TransactionType"),
    ),
}


def _enum_value_name(enum: Type[IntEnum], value: int) -> str:
    # Enum values share one scope per package, so they carry their enum's name
    return "{}_{}".format(enum.__name__, enum(value).name)


def _field(spec: FieldSpec) -> descriptor_pb2.FieldDescriptorProto:
    number, name, kind = spec[0], spec[1], spec[2]
    options: Dict[str, Any] = spec[3] if len(spec) > 3 else {}  # type: ignore

    field = _F(name=name, number=number)
    field.label = _F.LABEL_REPEATED if options.get("repeated") else _F.LABEL_OPTIONAL
    default = options.get("default")
    if isinstance(kind, str) and kind in _SCALARS:
        field.type = _SCALARS[kind]
    elif isinstance(kind, type) and issubclass(kind, IntEnum):
        field.type = _F.TYPE_ENUM
        field.type_name = ".{}.{}".format(PACKAGE, kind.__name__)
        if default is not None:
            default = _enum_value_name(kind, int(default))
    else:
        field.type = _F.TYPE_MESSAGE
        field.type_name = ".{}.{}".format(PACKAGE, kind)
    if default is not None:
        field.default_value = default
    return field


def _build() -> Dict[str, Type[Message]]:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="trezorapi/messages.proto",
        package=PACKAGE,
        syntax="proto2",
    )
    for enum in _ENUMS:
        enum_proto = file_proto.enum_type.add(name=enum.__name__)
        for member in enum:
            enum_proto.value.add(name=_enum_value_name(enum, member), number=member.value)

    declarations = list(_STRUCTS) + [(t.name, fields) for t, fields in _MESSAGES.items()]
    for name, fields in declarations:
        msg_proto = file_proto.message_type.add(name=name)
        for spec in fields:
            msg_proto.field.append(_field(spec))

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())

    classes = {}
    for name, _ in declarations:
        descriptor = pool.FindMessageTypeByName("{}.{}".format(PACKAGE, name))
        classes[name] = message_factory.GetMessageClass(descriptor)
    return classes


_CLASSES = _build()
globals().update(_CLASSES)

# Messages the device sends to ask for user interaction
INTERACTION_TYPES = (
    MessageType.ButtonRequest,
    MessageType.PinMatrixRequest,
    MessageType.PassphraseRequest,
    MessageType.PassphraseStateRequest,
    MessageType.WordRequest,
)


def get_class(message_type: int) -> Optional[Type[Message]]:
    """
    Get the message class for a wire id.

    :param message_type: The numeric message type from a packet header
    :return: The class, or ``None`` when the id is not in the catalog
    """
    try:
        return _CLASSES[MessageType(message_type).name]
    except ValueError:
        return None


def get_type(msg: Message) -> MessageType:
    """
    Get the wire id of a message.

    :param msg: A message instance
    :return: The message type
    :raises ValueError: if the message cannot be sent on its own
    """
    name = msg.DESCRIPTOR.name
    if name not in MessageType.__members__ or _CLASSES.get(name) is not type(msg):
        raise ValueError("{} is not a top-level protocol message".format(name))
    return MessageType[name]


def is_interaction(msg: Message) -> bool:
    """Whether the device sent this message to ask for user interaction"""
    return msg.DESCRIPTOR.name in (t.name for t in INTERACTION_TYPES)


def format_message(msg: Message) -> str:
    # Only the name and size, field contents can be a PIN or passphrase
    return "<{}> ({} bytes)".format(msg.DESCRIPTOR.name, msg.ByteSize())
