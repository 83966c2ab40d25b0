#
#  kcore | klayout
#  exceptions.py
#
#  Exceptions raised by the layout registry, layouts and address spaces
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#


class LayoutException(Exception):
    """
    No layout could be produced for a type.
    """

    def __init__(self, message, type_id=None):
        super().__init__(message)
        self.type_id = type_id


class DuplicateLayoutException(LayoutException):
    """
    A layout was registered for a type that already has one.
    """


class InvalidArrayTypeException(ValueError):
    """
    An array layout was requested for something that isn't a one-dimensional array type.
    """


class AddressSpaceReadException(Exception):
    """
    """

    def __init__(self, message, offset=0, length=0):
        super().__init__(message)
        self.offset = offset
        self.length = length
