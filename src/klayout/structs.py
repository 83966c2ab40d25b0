#
#  kcore | klayout
#  structs.py
#
#  Struct types whose layouts are built on demand by the LayoutManager.
#
#  A Struct subclass lists its fields in FIELDS, mapping field name to a type token (uint32_t, uintptr_t, another
#    Struct subclass, ...). The class itself is the type token for the struct. Nothing about size or byte order is
#    baked into the class; struct_layout_provider resolves each field through whichever LayoutManager asks, so the
#    same definition reads 32 and 64 bit, little and big endian data.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

from collections import namedtuple
from typing import Dict, List, Tuple

from klayout.address_space import BytesAddressSpace
from klayout.layout import Layout


def _bytes_to_hex(data) -> str:
    return data.hex()


class Struct:
    """
    Decoded struct instance. Fields are exposed as plain attributes.

    Subclasses must define FIELDS. ``off`` holds the address the instance was read from.
    """

    FIELDS: Dict[str, object] = {}

    def __init__(self):
        self.off = 0

    @property
    def type_name(self):
        return self.__class__.__name__

    def __eq__(self, other):
        if not isinstance(other, Struct) or other.FIELDS.keys() != self.FIELDS.keys():
            return False
        try:
            for field in self.FIELDS:
                if getattr(self, field) != getattr(other, field):
                    return False
        except AttributeError:
            return False
        return True

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = object.__hash__

    def __repr__(self):
        return str(self)

    def __str__(self):
        text = f'{self.__class__.__name__}('
        for field in self.FIELDS:
            attr = getattr(self, field, None)
            if isinstance(attr, bool):
                field_item = str(attr)
            elif isinstance(attr, int):
                field_item = hex(attr)
            else:
                field_item = str(attr)
            text += f'{field}={field_item}, '
        return text[:-2] + ')'

    def serialize(self):
        struct_dict = {'type': self.__class__.__name__}

        for field in self.FIELDS:
            value = getattr(self, field, None)
            if isinstance(value, (bytes, bytearray)):
                field_item = _bytes_to_hex(value)
            elif isinstance(value, Struct):
                field_item = value.serialize()
            elif isinstance(value, list):
                field_item = [v.serialize() if isinstance(v, Struct) else v for v in value]
            else:
                field_item = value
            struct_dict[field] = field_item

        return struct_dict


class StructLayout(Layout):
    def __init__(self, struct_class, fields: List[Tuple[str, int, Layout]], size):
        super().__init__(struct_class, size)
        self.struct_class = struct_class
        # (name, offset within the struct, layout)
        self.fields = fields

    def read(self, address_space, position):
        instance = self.struct_class()
        instance.off = position
        # one read for the whole struct, fields decode from a view of it
        data = address_space.read(position, self.size)
        view = BytesAddressSpace(data)
        for name, offset, layout in self.fields:
            setattr(instance, name, layout.read(view, offset))
        return instance


def struct_layout_provider(type_id, layouts):
    """
    Layout provider for Struct subclasses. Returns None for anything else so later providers get a chance.

    Fields are packed back to back with no alignment padding, the same as every struct definition in kmacho/kcore
        is written.
    """
    if not (isinstance(type_id, type) and issubclass(type_id, Struct)):
        return None
    if not type_id.FIELDS:
        return None

    fields = []
    offset = 0
    for name, field_type in type_id.FIELDS.items():
        if field_type is type_id:
            raise AssertionError(f"Recursive type definition on {type_id.__name__}")
        layout = layouts.resolve(field_type)
        fields.append((name, offset, layout))
        offset += layout.size

    return StructLayout(type_id, fields, offset)


class FixedString(namedtuple("FixedString", ["length"])):
    """
    Type token for a fixed size, null padded UTF-8 field (segment names and the like)
    """

    def __str__(self):
        return f'char[{self.length}]'


# char_t[16] reads like the C declaration it stands in for
char_t = [FixedString(i) for i in range(1, 65)]
char_t.insert(0, None)


class FixedStringLayout(Layout):
    def read(self, address_space, position):
        data = address_space.read(position, self.size)
        return data.split(b'\x00', 1)[0].decode('utf-8', errors='replace')


def fixed_string_layout_provider(type_id, layouts):
    if isinstance(type_id, FixedString) and type_id.length > 0:
        return FixedStringLayout(type_id, type_id.length)
    return None
