#
#  kcore | klayout
#  primitives.py
#
#  Fixed width scalar layouts.
#
#  Every primitive layout is bound to a byte order ("little" or "big") when it's created and uses it for every read.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

import struct

from klayout.exceptions import DuplicateLayoutException
from klayout.layout import Layout, type_name

# Type tokens. These are what gets passed to LayoutManager.resolve() and used in Struct FIELDS.
bool_t = 'bool'
int8_t = 'int8'
uint8_t = 'uint8'
char16_t = 'char16'
int16_t = 'int16'
uint16_t = 'uint16'
int32_t = 'int32'
uint32_t = 'uint32'
int64_t = 'int64'
uint64_t = 'uint64'
float_t = 'float'
double_t = 'double'

# Pointer sized unsigned int. Not one of the primitives; see add_pointer_layout()
uintptr_t = 'uintptr'

BYTE_ORDERS = ("little", "big")


def uint_to_int(uint, bits):
    """
    Assume an int was read from binary as an unsigned int,

    decode it as a two's compliment signed integer

    :param uint:
    :param bits:
    :return:
    """
    if (uint & (1 << (bits - 1))) != 0:  # if sign bit is set e.g., 8bit: 128-255
        uint = uint - (1 << bits)  # compute negative value
    return uint  # return positive value as is


class PrimitiveTypeLayout(Layout):
    def __init__(self, type_id, byte_order, size):
        if byte_order not in BYTE_ORDERS:
            raise ValueError(f'byte_order must be "little" or "big", not {byte_order!r}')
        super().__init__(type_id, size)
        self.byte_order = byte_order

    @property
    def is_big_endian(self):
        return self.byte_order == "big"

    def read(self, address_space, position):
        return self.decode(address_space.read(position, self.size))

    def decode(self, data: bytes):
        raise NotImplementedError


class BoolLayout(PrimitiveTypeLayout):
    def __init__(self, byte_order="little", type_id=bool_t):
        super().__init__(type_id, byte_order, 1)

    def decode(self, data):
        return data[0] != 0


class UnsignedIntLayout(PrimitiveTypeLayout):
    def decode(self, data):
        return int.from_bytes(data, self.byte_order)


class SignedIntLayout(PrimitiveTypeLayout):
    def decode(self, data):
        return uint_to_int(int.from_bytes(data, self.byte_order), self.size * 8)


class CharLayout(PrimitiveTypeLayout):
    """
    A single UTF-16 code unit. Lone surrogates come back as-is.
    """

    def __init__(self, byte_order="little", type_id=char16_t):
        super().__init__(type_id, byte_order, 2)

    def decode(self, data):
        return chr(int.from_bytes(data, self.byte_order))


class SingleLayout(PrimitiveTypeLayout):
    def __init__(self, byte_order="little", type_id=float_t):
        super().__init__(type_id, byte_order, 4)

    def decode(self, data):
        return struct.unpack('>f' if self.is_big_endian else '<f', data)[0]


class DoubleLayout(PrimitiveTypeLayout):
    def __init__(self, byte_order="little", type_id=double_t):
        super().__init__(type_id, byte_order, 8)

    def decode(self, data):
        return struct.unpack('>d' if self.is_big_endian else '<d', data)[0]


def _int_layouts(byte_order):
    return [
        SignedIntLayout(int8_t, byte_order, 1),
        UnsignedIntLayout(uint8_t, byte_order, 1),
        SignedIntLayout(int16_t, byte_order, 2),
        UnsignedIntLayout(uint16_t, byte_order, 2),
        SignedIntLayout(int32_t, byte_order, 4),
        UnsignedIntLayout(uint32_t, byte_order, 4),
        SignedIntLayout(int64_t, byte_order, 8),
        UnsignedIntLayout(uint64_t, byte_order, 8),
    ]


def add_primitives(layouts, byte_order="little"):
    """
    Register bool, int8/uint8, char16, int16/uint16, int32/uint32, int64/uint64, float and double layouts

    :param layouts: LayoutManager
    :param byte_order: "little" or "big", used by all twelve layouts
    :raises DuplicateLayoutException: if any of them is already registered. Nothing is registered in that case.
    :return: the same LayoutManager
    """
    primitives = [BoolLayout(byte_order), CharLayout(byte_order)] + _int_layouts(byte_order) + \
        [SingleLayout(byte_order), DoubleLayout(byte_order)]

    for layout in primitives:
        if layout.type_id in layouts:
            raise DuplicateLayoutException(f'A layout for {type_name(layout.type_id)} is already registered',
                                           layout.type_id)

    for layout in primitives:
        layouts.register(layout)
    return layouts


def add_pointer_layout(layouts, ptr_size=8, byte_order="little"):
    """
    Register uintptr_t as a ptr_size wide unsigned int

    :param layouts: LayoutManager
    :param ptr_size: 4 or 8
    :param byte_order:
    :return: the same LayoutManager
    """
    if ptr_size not in (4, 8):
        raise ValueError(f'Unsupported pointer size {ptr_size}')
    layouts.register(UnsignedIntLayout(uintptr_t, byte_order, ptr_size))
    return layouts
