#! /usr/bin/env python3

from ._cli import main

main()
