"""
Tools
*****

BIP32 path helpers, the :class:`expect` response checker and text normalization.
"""

import functools
import unicodedata

from typing import Any, Callable, List, Optional, Type, TypeVar, Union

from google.protobuf.message import Message

from .errors import UnexpectedMessageError

HARDENED_FLAG = 1 << 31

F = TypeVar("F", bound=Callable[..., Any])


def H_(x: int) -> int:
    """
    Shortcut function that "hardens" a number in a BIP44 path.
    """
    return x | HARDENED_FLAG


def is_hardened(i: int) -> bool:
    """
    Whether the given index is hardened
    """
    return i & HARDENED_FLAG != 0


def parse_path(nstr: str) -> List[int]:
    """
    Convert BIP32 path string to list of uint32 integers with hardened flags.
    Several conventions are supported to set the hardened flag: -1, 1', 1h

    e.g.: "0/1h/1" -> [0, 0x80000001, 1]

    :param nstr: path string
    :return: list of integers
    """
    if not nstr:
        return []

    n = nstr.split("/")

    # m/a/b/c => a/b/c
    if n[0] == "m":
        n = n[1:]

    def str_to_harden(x: str) -> int:
        if x.startswith("-"):
            return H_(abs(int(x)))
        elif x.endswith(("h", "'")):
            return H_(int(x[:-1]))
        else:
            return int(x)

    try:
        path = [str_to_harden(x) for x in n]
    except Exception:
        raise ValueError("Invalid BIP32 path", nstr)
    if any(i < 0 or i > 0xFFFFFFFF for i in path):
        raise ValueError("Invalid BIP32 path", nstr)
    return path


def format_path(path: List[int]) -> str:
    """
    Convert a list of integers back to a path string, using ``h`` for hardened indexes.
    """
    def index_to_str(i: int) -> str:
        if is_hardened(i):
            return "{}h".format(i & ~HARDENED_FLAG)
        return str(i)
    return "/".join(["m"] + [index_to_str(i) for i in path])


def normalize_nfc(txt: Union[str, bytes]) -> str:
    """
    Normalize text to NFC, decoding UTF-8 bytes first.
    """
    if isinstance(txt, bytes):
        txt = txt.decode("utf-8")
    if isinstance(txt, str):
        return unicodedata.normalize("NFC", txt)
    raise TypeError("str or bytes expected")


class expect(object):
    """
    Decorator that checks the function returned the expected message type.

    With ``field`` set, only the value of that field is returned.
    """
    def __init__(self, expected: Type[Message], field: Optional[str] = None) -> None:
        self.expected = expected
        self.field = field

    def __call__(self, f: F) -> F:
        @functools.wraps(f)
        def wrapped_f(*args: Any, **kwargs: Any) -> Any:
            ret = f(*args, **kwargs)
            if not isinstance(ret, self.expected):
                raise UnexpectedMessageError(ret, self.expected.DESCRIPTOR.name)
            if self.field is not None:
                return getattr(ret, self.field)
            return ret
        return wrapped_f  # type: ignore
