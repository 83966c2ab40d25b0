#
#  kcore | klayout
#  reader.py
#
#  Typed reads against an address space
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

from typing import List

from klayout.address_space import AddressSpace
from klayout.exceptions import AddressSpaceReadException
from klayout.layout import array_of
from klayout.registry import LayoutManager


class Reader:
    """
    Pairs an address space with the LayoutManager used to interpret it.
    """

    CSTRING_CHUNK_SIZE = 0x100

    def __init__(self, address_space: AddressSpace, layouts: LayoutManager):
        self.address_space = address_space
        self.layouts = layouts

    # kept as `data_source` too, for code that wants the raw store behind a reader
    @property
    def data_source(self) -> AddressSpace:
        return self.address_space

    def read(self, type_id, address: int):
        return self.layouts.resolve(type_id).read(self.address_space, address)

    def read_array(self, type_id, address: int, count: int) -> List:
        if count == 0:
            return []
        return self.layouts.resolve_array(array_of(type_id), count).read(self.address_space, address)

    def read_bytes(self, address: int, count: int) -> bytes:
        return self.address_space.read(address, count)

    def read_cstring(self, address: int, max_length=4096) -> str:
        """
        Read a null terminated UTF-8 string

        :raises AddressSpaceReadException: if no terminator turns up in the first `max_length` bytes, or the string
            runs off the end of the address space
        """
        data = bytearray()
        while len(data) < max_length:
            position = address + len(data)
            chunk_size = min(self.CSTRING_CHUNK_SIZE, max_length - len(data))
            try:
                chunk = self.address_space.read(position, chunk_size)
            except AddressSpaceReadException:
                # string ends close to the edge of the mapping; go byte by byte
                chunk = bytearray()
                while len(chunk) < chunk_size:
                    byte = self.address_space.read(position + len(chunk), 1)
                    chunk += byte
                    if byte == b'\x00':
                        break
            end = chunk.find(b'\x00')
            if end != -1:
                data += chunk[:end]
                return data.decode('utf-8', errors='replace')
            data += chunk

        raise AddressSpaceReadException(f'No string terminator within {hex(max_length)} bytes of {hex(address)}',
                                        address, max_length)
