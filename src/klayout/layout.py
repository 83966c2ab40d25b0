#
#  kcore | klayout
#  layout.py
#
#  A Layout pairs a type with a fixed byte size and knows how to read a value of that type out of an address space.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

from abc import ABC, abstractmethod
from collections import namedtuple

from klayout.address_space import AddressSpace


class Layout(ABC):
    """
    Base class for every layout.

    `type_id` is whatever token the layout was registered under (a string constant for primitives,
        an ArrayType for arrays, the class itself for Structs). `size` is fixed at construction.
    """

    def __init__(self, type_id, size: int):
        if size <= 0:
            raise ValueError(f'Layout for {type_id} must have a positive size, got {size}')
        self._type_id = type_id
        self._size = size

    @property
    def type_id(self):
        return self._type_id

    @property
    def size(self) -> int:
        return self._size

    @abstractmethod
    def read(self, address_space: AddressSpace, position: int):
        """
        Decode one value starting at `position`
        """

    def __repr__(self):
        return f'<{self.__class__.__name__} {type_name(self.type_id)} size={hex(self.size)}>'


class ArrayType(namedtuple("ArrayType", ["element", "rank"])):
    """
    Type token for an array of `element`.

    Only rank 1 arrays can be given a layout; the rank exists so that callers can describe (and be refused) anything
        else.
    """

    def __str__(self):
        return f'{type_name(self.element)}[{"," * (self.rank - 1)}]'


def array_of(element, rank=1) -> ArrayType:
    return ArrayType(element, rank)


def type_name(type_id) -> str:
    if isinstance(type_id, type):
        return type_id.__name__
    return str(type_id)


class ArrayLayout(Layout):
    """
    `count` consecutive elements of `element_layout`, index 0 at the lowest address
    """

    def __init__(self, type_id, element_layout: Layout, count: int):
        super().__init__(type_id, element_layout.size * count)
        self.element_layout = element_layout
        self.count = count

    def read(self, address_space, position):
        stride = self.element_layout.size
        return [self.element_layout.read(address_space, position + (i * stride)) for i in range(self.count)]
