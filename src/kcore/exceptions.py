#
#  kcore | kcore
#  exceptions.py
#
#  Errors raised while walking a core image
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) kat 2021.
#

from kmacho.exceptions import BadInputFormatException, MalformedMachOException, MissingSymbolException


class NoDylinkerFoundException(BadInputFormatException):
    """
    Neither the hint address nor any page of any segment holds a dylinker header
    """


class UnsupportedAllImageInfosVersionException(BadInputFormatException):
    def __init__(self, version):
        super().__init__(f'dyld_all_image_infos version {version} is not supported')
        self.version = version
