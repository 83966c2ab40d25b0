#
#  kcore | kmacho
#  macho.py
#
#  A view of a Mach-O image rooted at some position in an address space.
#
#  The image might be a file on disk (position 0 of a file backed address space), or an image mapped into a
#    process, read back through a core file's virtual address space. In the second case (is_data_from_memory),
#    file offsets inside the image (symbol table, string table) have to be found through __LINKEDIT, because the
#    image wasn't mapped at the address it was linked at.
#
#  Everything is read lazily and only once.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) kat 2021.
#

from typing import Dict, List

from klayout import AddressSpace, AddressSpaceReadException, Lazy, Reader, SegmentAddressSpace, \
    create_layout_manager, log, segment_mapping
from kmacho import LOAD_COMMAND, MH_CIGAM, MH_CIGAM_64, MH_FILETYPE, MH_MAGIC, MH_MAGIC_64, VALID_MAGICS
from kmacho.exceptions import BadInputFormatException, MalformedMachOException, MissingSymbolException
from kmacho.structs import load_command, mach_header, mach_header_64, segment_command, segment_command_64, \
    symtab_command, symtab_entry


class Segment:
    def __init__(self, cmd):
        self.cmd = cmd
        self.is64 = isinstance(cmd, segment_command_64)
        self.name = cmd.segname
        self.vm_address = cmd.vmaddr
        self.vm_size = cmd.vmsize
        self.file_address = cmd.fileoff
        self.file_size = cmd.filesize

    def __str__(self):
        return f'Segment {self.name} at {hex(self.vm_address)}'

    def serialize(self):
        return {
            'command': self.cmd.serialize(),
            'name': self.name,
            'vm_address': self.vm_address,
            'vm_size': self.vm_size,
            'file_address': self.file_address,
            'file_size': self.file_size
        }


class Symbol:
    def __init__(self, name, entry: symtab_entry):
        self.name = name
        self.entry = entry
        self.value = entry.value

    def __str__(self):
        return f'{self.name} @ {hex(self.value)}'


class SymbolTable:
    def __init__(self, image: 'MachOFile', cmd: symtab_command):
        self.image = image
        self.cmd = cmd
        self.table: List[Symbol] = self._load_symbol_table()
        self._by_name: Dict[str, Symbol] = {}
        for sym in self.table:
            # first definition wins
            self._by_name.setdefault(sym.name, sym)

    def _load_symbol_table(self):
        reader = self.image.data_reader
        entries = reader.read_array(symtab_entry, self.image.file_offset_to_address(self.cmd.symoff), self.cmd.nsyms)
        strtab = self.image.file_offset_to_address(self.cmd.stroff)

        table = []
        for entry in entries:
            if entry.str_index >= self.cmd.strsize:
                raise MalformedMachOException(f'Symbol name index {hex(entry.str_index)} is outside the string table')
            table.append(Symbol(reader.read_cstring(strtab + entry.str_index), entry))
        return table

    @property
    def symbols(self) -> List[Symbol]:
        return self.table

    def find(self, name) -> Symbol:
        try:
            return self._by_name[name]
        except KeyError:
            raise MissingSymbolException(name)

    def __contains__(self, name):
        return name in self._by_name


class MachOFile:
    def __init__(self, address_space: AddressSpace, position=0, is_data_from_memory=False):
        self.address_space = address_space
        self.position = position
        self.is_data_from_memory = is_data_from_memory

        self._header_magic = Lazy(self._read_header_magic)
        self._data_reader = Lazy(self._create_data_reader)
        self._header = Lazy(self._read_header)
        self._load_commands = Lazy(self._read_load_commands)
        self._segments = Lazy(self._read_segments)
        self._symtab = Lazy(self._read_symtab)
        self._preferred_vm_base_address = Lazy(self._find_preferred_vm_base_address)
        self._virtual_address_reader = Lazy(self._create_virtual_address_reader)

    @property
    def header_magic(self) -> int:
        return self._header_magic.value

    @property
    def is_magic_valid(self) -> bool:
        try:
            return self.header_magic in VALID_MAGICS
        except AddressSpaceReadException:
            return False

    @property
    def byte_order(self):
        return "big" if self.header_magic in (MH_MAGIC, MH_MAGIC_64) else "little"

    @property
    def is64(self) -> bool:
        return self.header_magic in (MH_MAGIC_64, MH_CIGAM_64)

    @property
    def ptr_size(self):
        return 8 if self.is64 else 4

    @property
    def data_reader(self) -> Reader:
        """
        Reader over the address space this image was handed, using this image's byte order and pointer size
        """
        return self._data_reader.value

    @property
    def header(self):
        return self._header.value

    @property
    def filetype(self) -> MH_FILETYPE:
        return MH_FILETYPE(self.header.filetype)

    @property
    def is_dylinker(self) -> bool:
        return self.header.filetype == MH_FILETYPE.DYLINKER

    @property
    def load_commands(self) -> List[load_command]:
        return self._load_commands.value

    @property
    def segments(self) -> List[Segment]:
        return self._segments.value

    @property
    def symtab(self) -> SymbolTable:
        return self._symtab.value

    @property
    def preferred_vm_base_address(self) -> int:
        return self._preferred_vm_base_address.value

    @property
    def load_address(self) -> int:
        return self.position

    @property
    def virtual_address_reader(self) -> Reader:
        return self._virtual_address_reader.value

    def segment(self, name) -> Segment:
        for seg in self.segments:
            if seg.name == name:
                return seg
        raise MalformedMachOException(f'No {name} segment')

    def file_offset_to_address(self, offset) -> int:
        """
        Translate a file offset within this image into an address in self.address_space
        """
        if not self.is_data_from_memory:
            return self.position + offset

        linkedit = self.segment('__LINKEDIT')
        if not linkedit.file_address <= offset <= linkedit.file_address + linkedit.file_size:
            raise MalformedMachOException(f'File offset {hex(offset)} is outside of __LINKEDIT')
        slide = self.load_address - self.preferred_vm_base_address
        return linkedit.vm_address + slide + (offset - linkedit.file_address)

    def _read_header_magic(self):
        return int.from_bytes(self.address_space.read(self.position, 4), "big")

    def _check_magic(self):
        if not self.is_magic_valid:
            log.error(f'Bad Magic at {hex(self.position)}')
            raise BadInputFormatException(f'Bad Mach-O magic at {hex(self.position)}')

    def _create_data_reader(self):
        self._check_magic()
        return Reader(self.address_space, create_layout_manager(self.byte_order, self.ptr_size))

    def _read_header(self):
        return self.data_reader.read(mach_header_64 if self.is64 else mach_header, self.position)

    def _header_size(self):
        return self.data_reader.layouts.resolve(mach_header_64 if self.is64 else mach_header).size

    def _read_load_commands(self):
        commands = []
        ea = self.position + self._header_size()
        for i in range(self.header.loadcnt):
            cmd = self.data_reader.read(load_command, ea)
            if cmd.cmdsize < 8:
                raise MalformedMachOException(f'Load command {i} at {hex(ea)} has bad size {hex(cmd.cmdsize)}')
            commands.append(cmd)
            ea += cmd.cmdsize
        return commands

    def _read_segments(self):
        segments = []
        for cmd in self.load_commands:
            if cmd.cmd == LOAD_COMMAND.SEGMENT_64:
                segments.append(Segment(self.data_reader.read(segment_command_64, cmd.off)))
            elif cmd.cmd == LOAD_COMMAND.SEGMENT:
                segments.append(Segment(self.data_reader.read(segment_command, cmd.off)))
        return segments

    def _read_symtab(self):
        for cmd in self.load_commands:
            if cmd.cmd == LOAD_COMMAND.SYMTAB:
                return SymbolTable(self, self.data_reader.read(symtab_command, cmd.off))
        raise MalformedMachOException('Image has no symbol table')

    def _find_preferred_vm_base_address(self):
        for seg in self.segments:
            if seg.file_address == 0 and seg.file_size != 0:
                return seg.vm_address
        raise MalformedMachOException('No segment maps the start of the file')

    def _create_virtual_address_reader(self):
        if self.is_data_from_memory:
            return Reader(self.address_space, self.data_reader.layouts)

        mappings = [segment_mapping(seg.vm_address, self.position + seg.file_address, seg.file_size)
                    for seg in self.segments]
        return Reader(SegmentAddressSpace(self.address_space, mappings), self.data_reader.layouts)

    def serialize(self):
        return {
            'load_address': self.load_address,
            'filetype': self.filetype.name,
            'segments': [seg.serialize() for seg in self.segments]
        }
