#
#  kcore | kcore
#  core.py
#
#  MachCore, a Mach-O core file and the images its process had loaded.
#
#  Nothing in a core says where dyld was mapped. Unless we're handed a hint, we look for it: dyld is always mapped
#    page aligned, so every page of every segment is checked for a Mach-O header of filetype DYLINKER, and the first
#    hit wins.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) kat 2021.
#

from collections import namedtuple
from typing import Tuple

from klayout import AddressSpace, AddressSpaceReadException, Lazy, Reader, log
from kmacho import MachOFile
from kcore.dyld import MachDyld
from kcore.exceptions import NoDylinkerFoundException


class MachLoadedImage(namedtuple("MachLoadedImage", ["image", "load_address", "path"])):
    """
    An image dyld had loaded, with a MachOFile rooted at its load address
    """

    def serialize(self):
        return {
            'path': self.path,
            'load_address': self.load_address,
            'image': self.image.serialize()
        }


class MachCore:
    PAGE_SIZE = 0x1000

    def __init__(self, address_space: AddressSpace, dylinker_hint_address=0):
        self.address_space = address_space
        self.macho = MachOFile(address_space)
        self.dylinker_hint_address = dylinker_hint_address

        self._dylinker_address = Lazy(self._find_dylinker)
        self._dylinker = Lazy(lambda: MachDyld(self._image_at(self.dylinker_address)))
        self._loaded_images = Lazy(self._read_images)

    @property
    def is_valid_core_file(self) -> bool:
        return self.macho.is_magic_valid

    @property
    def virtual_address_reader(self) -> Reader:
        return self.macho.virtual_address_reader

    @property
    def dylinker_address(self) -> int:
        return self._dylinker_address.value

    @property
    def dylinker(self) -> MachDyld:
        return self._dylinker.value

    @property
    def loaded_images(self) -> Tuple[MachLoadedImage, ...]:
        return self._loaded_images.value

    def _image_at(self, address) -> MachOFile:
        return MachOFile(self.virtual_address_reader.data_source, address, is_data_from_memory=True)

    def is_valid_dylinker_address(self, address) -> bool:
        dylinker = self._image_at(address)
        if not dylinker.is_magic_valid:
            return False
        try:
            return dylinker.is_dylinker
        except AddressSpaceReadException:
            # magic fit but the rest of the header runs off the mapping
            return False

    def _find_dylinker(self):
        if self.dylinker_hint_address != 0:
            if self.is_valid_dylinker_address(self.dylinker_hint_address):
                log.debug(f'Using dylinker hint {hex(self.dylinker_hint_address)}')
                return self.dylinker_hint_address
            log.warn(f'Dylinker hint {hex(self.dylinker_hint_address)} is not a dylinker, scanning')

        for segment in self.macho.segments:
            for offset in range(0, segment.file_size, self.PAGE_SIZE):
                address = segment.vm_address + offset
                log.debug_tm(f'Checking {hex(address)} in {segment.name}')
                if self.is_valid_dylinker_address(address):
                    log.debug(f'Found dylinker at {hex(address)}')
                    return address

        log.error('No dylinker module found')
        raise NoDylinkerFoundException('No dylinker module found')

    def _read_images(self):
        return tuple(MachLoadedImage(self._image_at(image.load_address), image.load_address, image.path)
                     for image in self.dylinker.images)

    def serialize(self):
        return {
            'dylinker_address': self.dylinker_address,
            'dylinker': self.dylinker.serialize(),
            'images': [image.serialize() for image in self.loaded_images]
        }
