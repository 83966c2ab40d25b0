#
#  kcore | kmacho
#  exceptions.py
#
#  Format errors in Mach-O data
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) kat 2021.
#


class BadInputFormatException(Exception):
    """
    Foreign data doesn't look like what it's supposed to be
    """


class MalformedMachOException(BadInputFormatException):
    """
    """


class MissingSymbolException(BadInputFormatException):
    def __init__(self, name):
        super().__init__(f'Symbol {name} not found in symbol table')
        self.name = name
