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
User Interaction
****************

Push-style answers for the prompts a :class:`~trezorapi.session.Session` returns.

:meth:`Session.call <trezorapi.session.Session.call>` asks a UI object for the value of each prompt.
A UI object has these methods:

- ``button_request(code)``: notify the user that the device is waiting for a button press
- ``get_pin(code)``: return the PIN, as positions on the scrambled matrix shown on the device
- ``get_passphrase()``: return the passphrase entered on the host
- ``get_word(type)``: return one recovery word

Raising :class:`~trezorapi.errors.ActionCanceledError` from any of them cancels the operation.
"""

import sys

from typing import Callable, Optional, Set

from mnemonic import Mnemonic

from .errors import ActionCanceledError, BadArgumentError
from .messages import WordRequestType

PIN_MATRIX_DESCRIPTION = """
Use the numeric keypad to describe number positions. The layout is:
    7 8 9
    4 5 6
    1 2 3
""".strip()


def echo(msg: str) -> None:
    print(msg, file=sys.stderr)


def prompt(msg: str, hide_input: bool = False) -> str:
    try:
        if hide_input:
            import getpass
            return getpass.getpass(msg + ' :\n')
        else:
            return input(msg + ':\n')
    except (KeyboardInterrupt, EOFError):
        raise ActionCanceledError("{} was cancelled".format(msg))


class PassphraseUI:
    """
    UI with a passphrase known up front, the PIN is typed in the terminal.
    """
    def __init__(self, passphrase: str = "", pin: Optional[str] = None) -> None:
        self.passphrase = passphrase
        self.pin = pin
        self.prompt_shown = False
        self.always_prompt = False
        self.return_passphrase = True
        self.get_word = mnemonic_words(expand=True)

    def button_request(self, code: Optional[int]) -> None:
        if not self.prompt_shown:
            echo("Please confirm action on your Trezor device")
        if not self.always_prompt:
            self.prompt_shown = True

    def get_pin(self, code: Optional[int] = None) -> str:
        if self.pin is not None:
            pin, self.pin = self.pin, None
            return pin
        echo(PIN_MATRIX_DESCRIPTION)
        return prompt("Please enter PIN", hide_input=True)

    def disallow_passphrase(self) -> None:
        self.return_passphrase = False

    def get_passphrase(self) -> str:
        if self.return_passphrase:
            return self.passphrase
        raise ActionCanceledError("Passphrase from host is not allowed")


def mnemonic_words(expand: bool = False, language: str = "english") -> Callable[[Optional[int]], str]:
    """
    Build a ``get_word`` function that asks for recovery words in the terminal.

    :param expand: Accept unique prefixes of words in the wordlist
    :param language: Wordlist language
    """
    wordlist: Set[str] = set(Mnemonic(language).wordlist) if expand else set()

    def expand_word(word: str) -> str:
        if not expand:
            return word
        if word in wordlist:
            return word
        matches = [w for w in wordlist if w.startswith(word)]
        if len(matches) == 1:
            return matches[0]
        echo("Choose one of: " + ", ".join(sorted(matches)))
        raise KeyError(word)

    def get_word(type: Optional[int] = None) -> str:
        if type is not None and type != WordRequestType.Plain:
            raise ActionCanceledError("Matrix word entry is not supported")
        while True:
            try:
                word = prompt("Enter one word of mnemonic")
                return expand_word(word)
            except KeyError:
                pass

    return get_word


class ButtonOnlyUI:
    """
    UI for non-interactive use. Button requests are acknowledged, anything that needs input is refused.
    """
    def button_request(self, code: Optional[int]) -> None:
        pass

    def get_pin(self, code: Optional[int] = None) -> str:
        raise BadArgumentError("The device asks for a PIN, but no UI to enter it was given")

    def get_passphrase(self) -> str:
        raise BadArgumentError("The device asks for a passphrase, but no UI to enter it was given")

    def get_word(self, type: Optional[int] = None) -> str:
        raise BadArgumentError("The device asks for a recovery word, but no UI to enter it was given")
