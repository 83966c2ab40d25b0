#
#  kcore | kcore
#  dyld.py
#
#  Walks dyld's own bookkeeping (dyld_all_image_infos) inside a process image to list what it had loaded.
#
#  dyld exports `_dyld_all_image_infos`. Its symbol value is the link-time address; dyld itself is almost never
#    mapped there, so the value is rebased by how far dyld slid. From the structure we get a pointer to an array of
#    dyld_image_info, and each of those points at the image's path.
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

from klayout import Lazy, Struct, bool_t, log, uint32_t, uintptr_t
from kmacho import MachOFile
from kcore.exceptions import UnsupportedAllImageInfosVersionException


class dyld_all_image_infos_version(Struct):
    FIELDS = {
        'version': uint32_t
    }


class dyld_all_image_infos_v2(Struct):
    """
    Leading fields of dyld_all_image_infos. Every later version keeps these at the same offsets and appends.
    """
    FIELDS = {
        'version': uint32_t,
        'info_array_count': uint32_t,
        'info_array': uintptr_t,
        'notification': uintptr_t,
        'process_detached_from_shared_region': bool_t
    }


class dyld_image_info(Struct):
    FIELDS = {
        'image_load_address': uintptr_t,
        'image_file_path': uintptr_t,
        'image_file_mod_date': uintptr_t
    }


MIN_ALL_IMAGE_INFOS_VERSION = 2


def rebase_address(static_address, preferred_base, load_address):
    return static_address - preferred_base + load_address


class DyldLoadedImage(namedtuple("DyldLoadedImage", ["path", "image_info"])):

    @property
    def load_address(self) -> int:
        return self.image_info.image_load_address


class MachDyld:
    ALL_IMAGE_INFOS_SYMBOL = '_dyld_all_image_infos'

    def __init__(self, dyld_image: MachOFile):
        self.image = dyld_image
        self._all_image_infos_address = Lazy(self._find_all_image_infos_address)
        self._all_image_infos = Lazy(self._read_all_image_infos)
        self._image_infos = Lazy(self._read_image_infos)
        self._images = Lazy(self._read_loaded_images)

    @property
    def all_image_infos_address(self) -> int:
        return self._all_image_infos_address.value

    @property
    def all_image_infos(self) -> dyld_all_image_infos_v2:
        return self._all_image_infos.value

    @property
    def image_infos(self) -> Tuple[dyld_image_info, ...]:
        return self._image_infos.value

    @property
    def images(self) -> Tuple[DyldLoadedImage, ...]:
        return self._images.value

    def _find_all_image_infos_address(self):
        symbol = self.image.symtab.find(self.ALL_IMAGE_INFOS_SYMBOL)
        address = rebase_address(symbol.value, self.image.preferred_vm_base_address, self.image.load_address)
        log.debug(f'{self.ALL_IMAGE_INFOS_SYMBOL}: {hex(symbol.value)} rebased to {hex(address)}')
        return address

    def _read_all_image_infos(self):
        reader = self.image.virtual_address_reader
        version = reader.read(dyld_all_image_infos_version, self.all_image_infos_address).version
        if version < MIN_ALL_IMAGE_INFOS_VERSION:
            log.error(f'dyld_all_image_infos at {hex(self.all_image_infos_address)} has version {version}')
            raise UnsupportedAllImageInfosVersionException(version)
        log.debug(f'dyld_all_image_infos version {version}')
        return reader.read(dyld_all_image_infos_v2, self.all_image_infos_address)

    def _read_image_infos(self):
        infos = self.all_image_infos
        return tuple(self.image.virtual_address_reader.read_array(dyld_image_info, infos.info_array,
                                                                  infos.info_array_count))

    def _read_loaded_images(self):
        reader = self.image.virtual_address_reader
        images = tuple(DyldLoadedImage(reader.read_cstring(info.image_file_path), info) for info in self.image_infos)
        log.info(f'dyld reports {len(images)} loaded images')
        return images

    def serialize(self):
        return {
            'image': self.image.serialize(),
            'all_image_infos': self.all_image_infos.serialize()
        }
