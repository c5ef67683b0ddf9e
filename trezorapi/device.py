"""
Device Management
*****************

Ping, PIN and settings changes, entropy, wipe, setup, backup and recovery.
"""

import os

from typing import Any, Optional

from google.protobuf.message import Message

from . import messages
from .errors import BadArgumentError
from .session import Session
from .tools import expect

RECOVERY_WORD_COUNTS = (12, 18, 24)
STRENGTHS = (128, 192, 256)


@expect(messages.Success, field="message")
def ping(
    session: Session,
    msg: str,
    button_protection: bool = False,
    pin_protection: bool = False,
    passphrase_protection: bool = False,
    ui: Any = None,
) -> Message:
    return session.call(
        messages.Ping(
            message=msg,
            button_protection=button_protection,
            pin_protection=pin_protection,
            passphrase_protection=passphrase_protection,
        ),
        ui,
    )


@expect(messages.Success, field="message")
def change_pin(session: Session, remove: bool = False, ui: Any = None) -> Message:
    ret = session.call(messages.ChangePin(remove=remove), ui)
    session.refresh_features()
    return ret


@expect(messages.Success, field="message")
def apply_settings(
    session: Session,
    label: Optional[str] = None,
    language: Optional[str] = None,
    use_passphrase: Optional[bool] = None,
    homescreen: Optional[bytes] = None,
    auto_lock_delay_ms: Optional[int] = None,
    display_rotation: Optional[int] = None,
    ui: Any = None,
) -> Message:
    settings = messages.ApplySettings()
    if label is not None:
        settings.label = label
    if language is not None:
        settings.language = language
    if use_passphrase is not None:
        settings.use_passphrase = use_passphrase
    if homescreen is not None:
        settings.homescreen = homescreen
    if auto_lock_delay_ms is not None:
        settings.auto_lock_delay_ms = auto_lock_delay_ms
    if display_rotation is not None:
        settings.display_rotation = display_rotation

    out = session.call(settings, ui)
    session.refresh_features()
    return out


@expect(messages.Success, field="message")
def apply_flags(session: Session, flags: int, ui: Any = None) -> Message:
    out = session.call(messages.ApplyFlags(flags=flags), ui)
    session.refresh_features()
    return out


@expect(messages.Entropy, field="entropy")
def get_entropy(session: Session, size: int, ui: Any = None) -> Message:
    return session.call(messages.GetEntropy(size=size), ui)


@expect(messages.Success, field="message")
def wipe(session: Session, ui: Any = None) -> Message:
    ret = session.call(messages.WipeDevice(), ui)
    session.initialize()
    return ret


@expect(messages.Success, field="message")
def reset(
    session: Session,
    display_random: bool = False,
    strength: int = 256,
    passphrase_protection: bool = False,
    pin_protection: bool = True,
    label: Optional[str] = None,
    language: str = "english",
    u2f_counter: int = 0,
    skip_backup: bool = False,
    no_backup: bool = False,
    ui: Any = None,
) -> Message:
    """
    Set up a new wallet on the device. The host contributes 32 bytes of entropy from :func:`os.urandom`.
    """
    if session.get_features().initialized:
        raise BadArgumentError("Device is initialized already. Call wipe() and try again.")
    if strength not in STRENGTHS:
        raise BadArgumentError("Invalid strength {}".format(strength))

    msg = messages.ResetDevice(
        display_random=display_random,
        strength=strength,
        passphrase_protection=bool(passphrase_protection),
        pin_protection=bool(pin_protection),
        language=language,
        u2f_counter=u2f_counter,
        skip_backup=bool(skip_backup),
        no_backup=bool(no_backup),
    )
    if label is not None:
        msg.label = label

    resp = session.call(msg, ui)
    if not isinstance(resp, messages.EntropyRequest):
        return resp

    ret = session.call(messages.EntropyAck(entropy=os.urandom(32)), ui)
    session.initialize()
    return ret


@expect(messages.Success, field="message")
def backup(session: Session, ui: Any = None) -> Message:
    ret = session.call(messages.BackupDevice(), ui)
    session.refresh_features()
    return ret


@expect(messages.Success, field="message")
def recover(
    session: Session,
    word_count: int = 24,
    passphrase_protection: bool = False,
    pin_protection: bool = True,
    label: Optional[str] = None,
    language: str = "english",
    dry_run: bool = False,
    ui: Any = None,
) -> Message:
    """
    Restore a wallet from its recovery words, entered word by word through ``ui.get_word``.
    """
    if word_count not in RECOVERY_WORD_COUNTS:
        raise BadArgumentError("Invalid word count. Use 12/18/24")
    if session.get_features().initialized and not dry_run:
        raise BadArgumentError("Device already initialized. Call wipe() and try again.")

    msg = messages.RecoveryDevice(
        word_count=word_count,
        passphrase_protection=bool(passphrase_protection),
        pin_protection=bool(pin_protection),
        language=language,
        enforce_wordlist=True,
        dry_run=dry_run,
    )
    if label is not None:
        msg.label = label

    ret = session.call(msg, ui)
    if not dry_run:
        session.initialize()
    return ret
