#
#  kcore | tests
#  test_core.py
#
#  Dylinker discovery, dyld_all_image_infos walking and loaded image resolution
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) kat 2022.
#
import json
import os
import sys
import tempfile
import unittest
from io import BytesIO

scriptdir = os.path.dirname(os.path.realpath(__file__))
sys.path.insert(0, f'{scriptdir}/../src')
sys.path.insert(0, scriptdir)

import kcore
from kcore import MachCore, MachDyld, rebase_address, NoDylinkerFoundException, \
    UnsupportedAllImageInfosVersionException, MissingSymbolException, BadInputFormatException, log, LogLevel, opts
from klayout import BytesAddressSpace
from kmacho import MH_FILETYPE
from corebuilder import *

log.LOG_LEVEL = LogLevel.WARN

error_buffer = []


def enable_error_capture():
    error_buffer.clear()
    log.LOG_ERR = error_buffer.append


class RecordingAddressSpace(BytesAddressSpace):
    def __init__(self, data):
        super().__init__(data)
        self.reads = []

    def read(self, offset, length):
        self.reads.append((offset, length))
        return super().read(offset, length)


class RecordingMachCore(MachCore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.checked = []

    def is_valid_dylinker_address(self, address):
        self.checked.append(address)
        return super().is_valid_dylinker_address(address)


class RebaseTestCase(unittest.TestCase):
    def test_rebase(self):
        self.assertEqual(rebase_address(0x1000, 0x0, 0x4000), 0x5000)
        self.assertEqual(rebase_address(0x7FFF00001000, 0x7FFF00000000, 0x10000), 0x11000)


class DylinkerDiscoveryTestCase(unittest.TestCase):

    def test_valid_core(self):
        self.assertTrue(MachCore(BytesAddressSpace(build_standard_core())).is_valid_core_file)
        self.assertFalse(MachCore(BytesAddressSpace(b'\x00' * 64)).is_valid_core_file)

    def test_scan_finds_page_aligned_dylinker(self):
        core = RecordingMachCore(BytesAddressSpace(build_standard_core()))
        self.assertEqual(core.dylinker_address, DYLD_ADDRESS)
        # the executable's page, then dyld's segment page by page
        self.assertEqual(core.checked, [EXECUTABLE_ADDRESS, DYLD_SEGMENT_ADDRESS,
                                        DYLD_SEGMENT_ADDRESS + PAGE_SIZE, DYLD_ADDRESS])

    def test_hint_skips_scan(self):
        data = build_standard_core()
        store = RecordingAddressSpace(data)
        core = RecordingMachCore(store, dylinker_hint_address=DYLD_ADDRESS)
        self.assertEqual(core.dylinker_address, DYLD_ADDRESS)
        self.assertEqual(core.checked, [DYLD_ADDRESS])

        dyld_segment = core.macho.segments[1]
        dyld_file_offset = dyld_segment.file_address + (DYLD_ADDRESS - dyld_segment.vm_address)
        for offset, length in store.reads:
            # header and load commands of the core, otherwise only dyld's own header
            self.assertTrue(offset < PAGE_SIZE or dyld_file_offset <= offset < dyld_file_offset + PAGE_SIZE,
                            hex(offset))

    def test_bad_hint_falls_back_to_scan(self):
        core = RecordingMachCore(BytesAddressSpace(build_standard_core()), dylinker_hint_address=LIBSYSTEM_ADDRESS)
        old_err = log.LOG_ERR
        enable_error_capture()
        try:
            self.assertEqual(core.dylinker_address, DYLD_ADDRESS)
        finally:
            log.LOG_ERR = old_err
        self.assertEqual(core.checked[0], LIBSYSTEM_ADDRESS)
        self.assertTrue(any(line.startswith('WARN') and 'is not a dylinker' in line for line in error_buffer))

    def test_unmapped_hint_falls_back_to_scan(self):
        core = MachCore(BytesAddressSpace(build_standard_core()), dylinker_hint_address=0xDEAD0000)
        self.assertEqual(core.dylinker_address, DYLD_ADDRESS)

    def test_no_dylinker(self):
        core = MachCore(BytesAddressSpace(build_standard_core(dyld_filetype=MH_DYLIB)))
        old_err = log.LOG_ERR
        enable_error_capture()
        try:
            with self.assertRaises(NoDylinkerFoundException) as context:
                _ = core.dylinker_address
        finally:
            log.LOG_ERR = old_err
        self.assertIn('No dylinker module found', str(context.exception))
        self.assertIsInstance(context.exception, BadInputFormatException)
        self.assertTrue(any('No dylinker module found' in line for line in error_buffer))

    def test_failed_discovery_is_retried(self):
        core = RecordingMachCore(BytesAddressSpace(build_standard_core(dyld_filetype=MH_DYLIB)))
        log.LOG_LEVEL = LogLevel.NONE
        try:
            for _ in range(2):
                with self.assertRaises(NoDylinkerFoundException):
                    _ = core.dylinker_address
        finally:
            log.LOG_LEVEL = LogLevel.WARN
        # every attempt scans again
        self.assertEqual(len(core.checked), 14)

    def test_discovery_memoized(self):
        core = RecordingMachCore(BytesAddressSpace(build_standard_core()))
        _ = core.dylinker_address
        _ = core.dylinker_address
        self.assertEqual(len(core.checked), 4)
        self.assertIs(core.dylinker, core.dylinker)

    def test_dylinker_view(self):
        core = MachCore(BytesAddressSpace(build_standard_core()))
        self.assertIsInstance(core.dylinker, MachDyld)
        self.assertEqual(core.dylinker.image.load_address, DYLD_ADDRESS)
        self.assertTrue(core.dylinker.image.is_data_from_memory)
        self.assertIs(core.dylinker.image.address_space, core.virtual_address_reader.data_source)


class DyldWalkerTestCase(unittest.TestCase):

    def dyld(self, **kwargs):
        return MachCore(BytesAddressSpace(build_standard_core(**kwargs))).dylinker

    def test_all_image_infos_address(self):
        self.assertEqual(self.dyld().all_image_infos_address, DYLD_ADDRESS + DYLD_ALL_IMAGE_INFOS_OFFSET)

    def test_all_image_infos_address_with_slide(self):
        dyld = self.dyld(preferred_base=0x7000)
        self.assertEqual(dyld.image.preferred_vm_base_address, 0x7000)
        self.assertEqual(dyld.all_image_infos_address, DYLD_ADDRESS + DYLD_ALL_IMAGE_INFOS_OFFSET)

    def test_all_image_infos(self):
        infos = self.dyld().all_image_infos
        self.assertEqual(infos.version, 2)
        self.assertEqual(infos.info_array_count, 2)
        self.assertEqual(infos.info_array, DYLD_ADDRESS + DYLD_IMAGE_INFO_ARRAY_OFFSET)
        self.assertFalse(infos.process_detached_from_shared_region)

    def test_image_infos(self):
        infos = self.dyld().image_infos
        self.assertEqual([i.image_load_address for i in infos], [EXECUTABLE_ADDRESS, LIBSYSTEM_ADDRESS])

    def test_images(self):
        images = self.dyld().images
        self.assertEqual([(i.path, i.load_address) for i in images], STANDARD_IMAGES)

    def test_newer_versions_read_through_v2_prefix(self):
        dyld = self.dyld(version=15)
        self.assertEqual(dyld.all_image_infos.version, 15)
        self.assertEqual(len(dyld.images), 2)

    def test_old_versions_rejected(self):
        for version in (0, 1):
            dyld = self.dyld(version=version)
            old_err = log.LOG_ERR
            enable_error_capture()
            try:
                with self.assertRaises(UnsupportedAllImageInfosVersionException) as context:
                    _ = dyld.all_image_infos
            finally:
                log.LOG_ERR = old_err
            self.assertEqual(context.exception.version, version)

    def test_missing_symbol(self):
        dyld = self.dyld(symbol_name='_something_else')
        with self.assertRaises(MissingSymbolException) as context:
            _ = dyld.all_image_infos_address
        self.assertEqual(context.exception.name, '_dyld_all_image_infos')

    def test_no_images(self):
        self.assertEqual(self.dyld(images=[]).images, ())


class LoadedImagesTestCase(unittest.TestCase):

    def test_end_to_end(self):
        core = kcore.load_core(build_standard_core())
        images = core.loaded_images
        self.assertEqual(len(images), 2)
        self.assertEqual([(i.path, i.load_address) for i in images], STANDARD_IMAGES)
        self.assertEqual(images[0].image.filetype, MH_FILETYPE.EXECUTE)
        self.assertEqual(images[1].image.filetype, MH_FILETYPE.DYLIB)
        self.assertEqual(images[1].image.load_address, LIBSYSTEM_ADDRESS)
        self.assertIs(core.loaded_images, images)

    def test_records_are_immutable(self):
        image = kcore.load_core(build_standard_core()).loaded_images[0]
        with self.assertRaises(AttributeError):
            image.path = '/tmp/evil'

    def test_end_to_end_32_bit_big_endian(self):
        writer = MachOWriter(is64=False, byte_order="big")
        addresses = addresses_for(writer)
        core = kcore.load_core(build_standard_core(writer, preferred_base=0x1000))
        self.assertEqual(core.dylinker_address, addresses.dyld)
        self.assertEqual([(i.path, i.load_address) for i in core.loaded_images], standard_images(addresses))

    def test_from_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'target.core')
            with open(path, 'wb') as fp:
                fp.write(build_standard_core())
            for use_mmaped_io in (True, False):
                with open(path, 'rb') as fp:
                    core = kcore.load_core(fp, use_mmaped_io=use_mmaped_io)
                    self.assertEqual([i.path for i in kcore.loaded_images(core)],
                                     [path for path, _ in STANDARD_IMAGES])
                    core.address_space.close()

    def test_from_bytesio_with_hint(self):
        core = kcore.load_core(BytesIO(build_standard_core()), dylinker_hint_address=DYLD_ADDRESS)
        self.assertEqual(len(core.loaded_images), 2)

    def test_dump(self):
        core = kcore.load_core(build_standard_core())
        dumped = json.loads(kcore.dump_loaded_images(core, color=False))
        self.assertEqual(dumped['dylinker_address'], DYLD_ADDRESS)
        self.assertEqual(dumped['images'][1], {'path': '/usr/lib/libSystem.B.dylib',
                                               'load_address': LIBSYSTEM_ADDRESS,
                                               'image': {'load_address': LIBSYSTEM_ADDRESS,
                                                         'filetype': 'DYLIB',
                                                         'segments': []}})

    def test_dump_dylinker(self):
        core = kcore.load_core(build_standard_core())
        dylinker = json.loads(kcore.dump_loaded_images(core, color=False))['dylinker']

        self.assertEqual(dylinker['image']['load_address'], DYLD_ADDRESS)
        self.assertEqual(dylinker['image']['filetype'], 'DYLINKER')
        segments = dylinker['image']['segments']
        self.assertEqual([seg['name'] for seg in segments], ['__TEXT', '__DATA', '__LINKEDIT'])
        self.assertEqual(segments[1]['vm_address'], PAGE_SIZE)
        self.assertEqual(segments[1]['file_size'], PAGE_SIZE)
        self.assertEqual(segments[1]['command']['type'], 'segment_command_64')
        self.assertEqual(segments[1]['command']['segname'], '__DATA')

        self.assertEqual(dylinker['all_image_infos'], {'type': 'dyld_all_image_infos_v2',
                                                       'version': 2,
                                                       'info_array_count': 2,
                                                       'info_array': DYLD_ADDRESS + DYLD_IMAGE_INFO_ARRAY_OFFSET,
                                                       'notification': 0,
                                                       'process_detached_from_shared_region': False})

    def test_dump_highlighted(self):
        core = kcore.load_core(build_standard_core())
        highlighted = kcore.dump_loaded_images(core, color=True)
        self.assertIn('\x1b[', highlighted)
        self.assertIn('libSystem.B.dylib', highlighted)

        opts.DISABLE_COLOR = True
        try:
            self.assertNotIn('\x1b[', kcore.dump_loaded_images(core, color=True))
        finally:
            opts.DISABLE_COLOR = False


if __name__ == '__main__':
    unittest.main()
