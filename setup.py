# -*- coding: utf-8 -*-
from setuptools import setup

packages = \
['trezorapi',
 'trezorapi.transport']

package_data = \
{'': ['*']}

install_requires = \
['ecdsa>=0,<1',
 'hidapi>=0.14.0',
 'libusb1>=1.7,<4',
 'mnemonic>=0,<1',
 'protobuf>=4.23.3,<7.0.0',
 'semver>=3.0.1,<4.0.0',
 'typing-extensions>=4.4,<5.0']

extras_require = \
{'test': ['pytest']}

entry_points = \
{'console_scripts': ['trezorapi = trezorapi._cli:main']}

setup_kwargs = {
    'name': 'trezorapi',
    'version': '0.1.0',
    'description': 'A library for talking to Trezor hardware wallets over USB',
    'long_description': "# trezorapi\n\nA Python library and command line tool for talking to Trezor hardware wallets.\n\nIt finds devices on WebUSB and HID, frames protocol messages into USB packets, runs a session with the device and signs Bitcoin transactions.\nPIN, passphrase and button requests from the device are returned to the caller as prompt values instead of callbacks.\n\n## Prerequisites\n\nThe hidapi and libusb libraries must be installed.\n\nFor Ubuntu/Debian:\n```\nsudo apt install libusb-1.0-0-dev libudev-dev python3-dev\n```\n\nFor macOS:\n```\nbrew install libusb\n```\n\n## Install\n\n```\npip3 install .\n```\n\n## Usage\n\n```\ntrezorapi enumerate\ntrezorapi -d <path> getxpub m/84h/0h/0h\n```\n\nAll output is JSON sent to `stdout`.\n\n## Tests\n\n```\ncd test\n./run_tests.py\n```\n",
    'author': 'trezorapi developers',
    'author_email': 'None',
    'maintainer': 'None',
    'maintainer_email': 'None',
    'url': 'None',
    'packages': packages,
    'package_data': package_data,
    'install_requires': install_requires,
    'extras_require': extras_require,
    'entry_points': entry_points,
    'python_requires': '>=3.8',
}


setup(**setup_kwargs)
