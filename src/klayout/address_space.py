#
#  kcore | klayout
#  address_space.py
#
#  Byte-addressable stores that layouts read from.
#
#  An address space only knows how to hand back `length` bytes at `offset`. Anything short of that is an error;
#    there is no such thing as a partial read here.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

import os
from abc import ABC, abstractmethod
from collections import namedtuple
from io import BytesIO
from typing import BinaryIO, List, Union

from klayout.exceptions import AddressSpaceReadException
from klayout.log import log

mmap = None


class AddressSpace(ABC):

    @abstractmethod
    def read(self, offset: int, length: int) -> bytes:
        """
        Read exactly `length` bytes starting at `offset`

        :raises AddressSpaceReadException: if the store can't supply all of them
        """

    @property
    @abstractmethod
    def length(self) -> int:
        """
        One past the highest readable offset
        """

    def _check_range(self, offset, length):
        if offset < 0 or length < 0 or offset + length > self.length:
            raise AddressSpaceReadException(
                f'Read of {hex(length)} bytes at {hex(offset)} is outside of the address space (size {hex(self.length)})',
                offset, length)


class BytesAddressSpace(AddressSpace):
    def __init__(self, data: Union[bytes, bytearray]):
        self.data = bytes(data)

    @property
    def length(self):
        return len(self.data)

    def read(self, offset, length):
        self._check_range(offset, length)
        return self.data[offset:offset + length]


class FileAddressSpace(AddressSpace):
    """
    File backed address space. Memory maps the file where possible, otherwise reads the whole thing in.
    """

    def __init__(self, fp: Union[BinaryIO, BytesIO], use_mmaped_io=True):
        self.fp = fp
        if isinstance(fp, BytesIO):
            use_mmaped_io = False

        if hasattr(fp, 'name') and isinstance(fp.name, str):
            self.name = os.path.basename(fp.name)
        else:
            self.name = ''

        self.file = None
        if use_mmaped_io:
            try:
                global mmap
                import mmap
                self.file = mmap.mmap(fp.fileno(), 0, access=mmap.ACCESS_READ)
            except (OSError, ValueError, AttributeError) as ex:
                log.info(f'Falling back to buffered io for {self.name or fp}: {ex}')
                self.file = None

        if self.file is None:
            fp.seek(0)
            self.file = bytes(fp.read())

        self.size = len(self.file)

    @property
    def length(self):
        return self.size

    def read(self, offset, length):
        self._check_range(offset, length)
        return bytes(self.file[offset:offset + length])

    def close(self):
        if mmap is not None and isinstance(self.file, mmap.mmap):
            self.file.close()
        self.fp.close()


segment_mapping = namedtuple("segment_mapping", ["vm_address", "file_address", "size"])


class SegmentAddressSpace(AddressSpace):
    """
    Virtual address space stitched together from segments of a backing store.

    Each mapping places `size` bytes of `base` starting at `file_address` at virtual address `vm_address`.
    Reads may run across mappings, as long as the addresses they cover are all mapped.
    """

    def __init__(self, base: AddressSpace, mappings: List[segment_mapping]):
        self.base = base
        self.mappings = sorted([m for m in mappings if m.size > 0], key=lambda m: m.vm_address)

    @property
    def length(self):
        if not self.mappings:
            return 0
        return max(m.vm_address + m.size for m in self.mappings)

    def _find_mapping(self, address):
        for mapping in self.mappings:
            if mapping.vm_address <= address < mapping.vm_address + mapping.size:
                return mapping
        return None

    def read(self, offset, length):
        if offset < 0 or length < 0:
            raise AddressSpaceReadException(f'Invalid read of {hex(length)} bytes at {hex(offset)}', offset, length)

        data = bytearray()
        address = offset
        remaining = length
        while remaining > 0:
            mapping = self._find_mapping(address)
            if mapping is None:
                raise AddressSpaceReadException(f'Address {hex(address)} is not mapped by any segment', offset, length)
            chunk = min(remaining, mapping.vm_address + mapping.size - address)
            data += self.base.read(mapping.file_address + address - mapping.vm_address, chunk)
            address += chunk
            remaining -= chunk

        return bytes(data)
