#
#  kcore | klayout
#  __init__.py
#
#  Layout registry and typed decoding over byte addressable stores
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

from klayout.address_space import AddressSpace, BytesAddressSpace, FileAddressSpace, SegmentAddressSpace, \
    segment_mapping
from klayout.exceptions import LayoutException, DuplicateLayoutException, InvalidArrayTypeException, \
    AddressSpaceReadException
from klayout.layout import Layout, ArrayLayout, ArrayType, array_of
from klayout.lazy import Lazy
from klayout.log import log, LogLevel
from klayout.primitives import *
from klayout.reader import Reader
from klayout.registry import LayoutManager
from klayout.structs import Struct, StructLayout, FixedString, FixedStringLayout, char_t, struct_layout_provider, \
    fixed_string_layout_provider


def create_layout_manager(byte_order="little", ptr_size=8) -> LayoutManager:
    """
    LayoutManager with the primitives, uintptr_t, and struct support installed

    :param byte_order: "little" or "big"
    :param ptr_size: width of uintptr_t, 4 or 8
    :return:
    """
    layouts = LayoutManager()
    add_primitives(layouts, byte_order)
    add_pointer_layout(layouts, ptr_size, byte_order)
    layouts.register_provider(struct_layout_provider)
    layouts.register_provider(fixed_string_layout_provider)
    return layouts
