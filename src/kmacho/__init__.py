#
#  kcore | kmacho
#  __init__.py
#
#  Mach-O constants, enums and the MachOFile object model
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) kat 2021.
#

from enum import IntEnum

# Magics, as read big-endian from the first four bytes of the header.
# *_CIGAM means the file is little endian.
MH_MAGIC = 0xFEEDFACE
MH_CIGAM = 0xCEFAEDFE
MH_MAGIC_64 = 0xFEEDFACF
MH_CIGAM_64 = 0xCFFAEDFE

VALID_MAGICS = (MH_MAGIC, MH_CIGAM, MH_MAGIC_64, MH_CIGAM_64)


class MH_FILETYPE(IntEnum):
    OBJECT = 0x1
    EXECUTE = 0x2
    FVMLIB = 0x3
    CORE = 0x4
    PRELOAD = 0x5
    DYLIB = 0x6
    DYLINKER = 0x7
    BUNDLE = 0x8
    DYLIB_STUB = 0x9
    DSYM = 0xA
    KEXT_BUNDLE = 0xB


LC_REQ_DYLD = 0x80000000


class LOAD_COMMAND(IntEnum):
    SEGMENT = 0x1
    SYMTAB = 0x2
    THREAD = 0x4
    UNIXTHREAD = 0x5
    DYSYMTAB = 0xB
    LOAD_DYLIB = 0xC
    ID_DYLIB = 0xD
    LOAD_DYLINKER = 0xE
    ID_DYLINKER = 0xF
    SEGMENT_64 = 0x19
    UUID = 0x1b
    NOTE = 0x31


from kmacho.exceptions import BadInputFormatException, MalformedMachOException, MissingSymbolException
from kmacho.structs import *
from kmacho.macho import MachOFile, Segment, Symbol, SymbolTable
