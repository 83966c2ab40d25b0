#
#  kcore | kcore
#  kcore.py
#
#  Outward facing API
#
#  Thin wrappers, so scripts have something stable to call while the internals move around.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) kat 2021.
#

from io import BytesIO
from typing import BinaryIO, List, Union

from klayout import AddressSpace, BytesAddressSpace, FileAddressSpace
from kcore.core import MachCore, MachLoadedImage
from kcore.util import to_json


def load_core(fp: Union[BinaryIO, BytesIO, bytes, AddressSpace], dylinker_hint_address=0,
              use_mmaped_io=True) -> MachCore:
    """
    Load a Mach-O core file.

    File should be opened with 'rb'

    :param fp: open file, raw bytes, or an AddressSpace that's already set up
    :param dylinker_hint_address: where dyld is believed to be mapped, 0 to search for it
    :param use_mmaped_io: memory map the file rather than reading it all in
    :return:
    """
    if isinstance(fp, AddressSpace):
        address_space = fp
    elif isinstance(fp, (bytes, bytearray)):
        address_space = BytesAddressSpace(fp)
    else:
        address_space = FileAddressSpace(fp, use_mmaped_io=use_mmaped_io)
    return MachCore(address_space, dylinker_hint_address)


def loaded_images(core: MachCore) -> List[MachLoadedImage]:
    return list(core.loaded_images)


def dump_loaded_images(core: MachCore, color=None) -> str:
    """
    JSON listing of the core's dylinker address and loaded images

    :param core:
    :param color: highlight with pygments; defaults to whether stdout is a terminal
    :return:
    """
    return to_json(core, color)
