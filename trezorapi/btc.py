"""
Bitcoin Operations
******************

Public keys, addresses, message signing and transaction signing on top of a :class:`~trezorapi.session.Session`.

Each function takes an optional UI object (see :mod:`trezorapi.ui`) to answer PIN and passphrase prompts.
"""

import logging

from typing import Any, Mapping, Optional, Sequence

from google.protobuf.message import Message

from . import messages
from .errors import FailureError
from .session import Prompt, Session
from .signer import SignedTransaction, Signer
from .tools import expect, normalize_nfc
from .tx import Transaction
from .ui import ButtonOnlyUI

LOG = logging.getLogger(__name__)


@expect(messages.PublicKey)
def get_public_node(
    session: Session,
    n: Sequence[int],
    ecdsa_curve_name: Optional[str] = None,
    show_display: bool = False,
    coin_name: str = "Bitcoin",
    script_type: Optional[int] = None,
    ui: Any = None,
) -> Message:
    msg = messages.GetPublicKey(
        address_n=n,
        show_display=show_display,
        coin_name=coin_name,
    )
    if ecdsa_curve_name is not None:
        msg.ecdsa_curve_name = ecdsa_curve_name
    if script_type is not None:
        msg.script_type = script_type
    return session.call(msg, ui)


@expect(messages.Address, field="address")
def get_address(
    session: Session,
    coin_name: str,
    n: Sequence[int],
    show_display: bool = False,
    script_type: int = messages.InputScriptType.SPENDADDRESS,
    multisig: Optional[Message] = None,
    ui: Any = None,
) -> Message:
    msg = messages.GetAddress(
        address_n=n,
        coin_name=coin_name,
        show_display=show_display,
        script_type=script_type,
    )
    if multisig is not None:
        msg.multisig.CopyFrom(multisig)
    return session.call(msg, ui)


@expect(messages.MessageSignature)
def sign_message(
    session: Session,
    coin_name: str,
    n: Sequence[int],
    message: str,
    script_type: int = messages.InputScriptType.SPENDADDRESS,
    ui: Any = None,
) -> Message:
    return session.call(
        messages.SignMessage(
            coin_name=coin_name,
            address_n=n,
            message=normalize_nfc(message).encode("utf-8"),
            script_type=script_type,
        ),
        ui,
    )


def verify_message(
    session: Session,
    coin_name: str,
    address: str,
    signature: bytes,
    message: str,
    ui: Any = None,
) -> bool:
    """
    Let the device check a message signature.

    :return: Whether the signature is valid for the address
    """
    try:
        resp = session.call(
            messages.VerifyMessage(
                address=address,
                signature=signature,
                message=normalize_nfc(message).encode("utf-8"),
                coin_name=coin_name,
            ),
            ui,
        )
    except FailureError as e:
        LOG.debug("message verification failed: %s", e)
        return False
    return isinstance(resp, messages.Success)


def sign_tx(
    session: Session,
    coin_name: str,
    tx: Transaction,
    prev_txes: Optional[Mapping[bytes, Transaction]] = None,
    ui: Any = None,
) -> SignedTransaction:
    """
    Sign a transaction, answering every prompt with ``ui``.

    If ``ui`` raises, the run is cancelled on the device and the exception re-raised.
    """
    if ui is None:
        ui = ButtonOnlyUI()
    signer = Signer(session, coin_name)
    result = signer.run(tx, prev_txes)
    while isinstance(result, Prompt):
        try:
            value = result.ask(ui)
            result.ack(value)
        except Exception:
            signer.cancel()
            raise
        result = signer.resolve(result, value)
    return result
