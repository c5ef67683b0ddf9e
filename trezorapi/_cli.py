#! /usr/bin/env python3

from .btc import get_public_node, sign_message
from .common import Chain, coin_name
from .device import ping
from .errors import (
    handle_errors,
    DEVICE_CONN_ERROR,
    HELP_TEXT,
    MISSING_ARGUMENTS,
)
from .session import Session
from .tools import format_path, parse_path
from .transport import enumerate_devices, get_transport
from .ui import PassphraseUI
from . import __version__

import argparse
import base64
import getpass
import logging
import json
import sys

from typing import (
    Any,
    Dict,
    IO,
    List,
    NoReturn,
    Optional,
    Union,
)


def get_ui(args: argparse.Namespace) -> PassphraseUI:
    return PassphraseUI(passphrase=args.password or "")


def enumerate_handler(args: argparse.Namespace) -> List[Dict[str, Any]]:
    result = []
    for descriptor in enumerate_devices(debug=None if args.debuglink else False):
        result.append({
            'type': 'trezor',
            'model': descriptor.model.value,
            'path': descriptor.path,
            'serial_number': descriptor.serial_number,
            'debug': descriptor.debug,
        })
    return result


def getfeatures_handler(args: argparse.Namespace, session: Session) -> Dict[str, Any]:
    features = session.get_features()
    return {
        'vendor': features.vendor,
        'model': session.model,
        'firmware_version': str(session.version),
        'device_id': features.device_id,
        'label': features.label,
        'initialized': features.initialized,
        'bootloader_mode': features.bootloader_mode,
        'pin_protection': features.pin_protection,
        'passphrase_protection': features.passphrase_protection,
        'needs_backup': features.needs_backup,
        'outdated': session.is_outdated(),
    }


def getxpub_handler(args: argparse.Namespace, session: Session) -> Dict[str, str]:
    path = parse_path(args.path)
    node = get_public_node(session, path, coin_name=coin_name(args.chain), ui=get_ui(args))
    return {'xpub': node.xpub, 'path': format_path(path)}


def signmessage_handler(args: argparse.Namespace, session: Session) -> Dict[str, str]:
    path = parse_path(args.path)
    sig = sign_message(session, coin_name(args.chain), path, args.message, ui=get_ui(args))
    return {'address': sig.address, 'signature': base64.b64encode(sig.signature).decode()}


def ping_handler(args: argparse.Namespace, session: Session) -> Dict[str, str]:
    return {'message': ping(session, args.message, button_protection=args.button_protection)}


class TrezorHelpFormatter(argparse.ArgumentDefaultsHelpFormatter, argparse.RawDescriptionHelpFormatter):
    pass

class TrezorArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.formatter_class = TrezorHelpFormatter

    def print_usage(self, file: Optional[IO[str]] = None) -> None:
        if file is None:
            file = sys.stderr
        super().print_usage(file)

    def print_help(self, file: Optional[IO[str]] = None) -> None:
        if file is None:
            file = sys.stderr
        super().print_help(file)
        error = {'error': 'Help text requested', 'code': HELP_TEXT}
        print(json.dumps(error))

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        args = {'prog': self.prog, 'message': message}
        error = {'error': '%(prog)s: error: %(message)s' % args, 'code': MISSING_ARGUMENTS}
        print(json.dumps(error))
        self.exit(2)

def get_parser() -> TrezorArgumentParser:
    parser = TrezorArgumentParser(description='Trezor command line tool, version {}.\nAccess and send commands to a Trezor device. Responses are in JSON format.'.format(__version__))
    parser.add_argument('--device-path', '-d', help='Specify the device path of the device to connect to. If not given, the first device enumerated is used.')
    parser.add_argument('--password', '-p', help='The BIP39 passphrase to give the device if it asks for one')
    parser.add_argument('--stdinpass', help='Enter the passphrase on the command line', action='store_true')
    parser.add_argument('--chain', help='Select chain to work with', type=Chain.argparse, choices=list(Chain), default=Chain.MAIN) # type: ignore
    parser.add_argument('--debug', help='Print debug statements', action='store_true')
    parser.add_argument('--version', action='version', version='%(prog)s {}'.format(__version__))

    subparsers = parser.add_subparsers(description='Commands', dest='command')
    # work-around to make subparser required
    subparsers.required = True

    enumerate_parser = subparsers.add_parser('enumerate', help='List all available devices')
    enumerate_parser.add_argument('--debuglink', help='Also list the debug link interfaces', action='store_true')
    enumerate_parser.set_defaults(func=enumerate_handler)

    getfeatures_parser = subparsers.add_parser('getfeatures', help='Show the device features reported during the handshake')
    getfeatures_parser.set_defaults(func=getfeatures_handler)

    getxpub_parser = subparsers.add_parser('getxpub', help='Get an extended public key')
    getxpub_parser.add_argument('path', help='The BIP 32 derivation path to derive the key at')
    getxpub_parser.set_defaults(func=getxpub_handler)

    signmsg_parser = subparsers.add_parser('signmessage', help='Sign a message')
    signmsg_parser.add_argument('message', help='The message to sign')
    signmsg_parser.add_argument('path', help='The BIP 32 derivation path of the key to sign the message with')
    signmsg_parser.set_defaults(func=signmessage_handler)

    ping_parser = subparsers.add_parser('ping', help='Send a message the device echoes back')
    ping_parser.add_argument('message', help='The message to send')
    ping_parser.add_argument('--button-protection', '-b', help='Ask for confirmation on the device first', action='store_true')
    ping_parser.set_defaults(func=ping_handler)

    return parser

def process_commands(cli_args: List[str]) -> Any:
    parser = get_parser()
    args = parser.parse_args(cli_args)

    command = args.command
    result: Dict[str, Any] = {}

    # Setup debug logging
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)

    # Enter the passphrase on stdin
    if args.stdinpass:
        args.password = getpass.getpass('Enter your passphrase: ')

    # List all available devices
    if command == 'enumerate':
        enum_result: Union[List[Dict[str, Any]], Dict[str, Any]] = {}
        with handle_errors(result=result, code=DEVICE_CONN_ERROR):
            enum_result = args.func(args)
        return result if 'error' in result else enum_result

    session = None
    with handle_errors(result=result, code=DEVICE_CONN_ERROR):
        session = Session(get_transport(args.device_path))
        session.open()
    if 'error' in result:
        return result
    assert session is not None

    # Do the commands
    with handle_errors(result=result, debug=args.debug):
        result = args.func(args, session)

    with handle_errors(result=result, debug=args.debug):
        session.close()

    return result

def main() -> None:
    result = process_commands(sys.argv[1:])
    print(json.dumps(result))
