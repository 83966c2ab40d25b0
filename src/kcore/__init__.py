from kcore.kcore import load_core, loaded_images, dump_loaded_images

from kcore.core import MachCore, MachLoadedImage
from kcore.dyld import MachDyld, DyldLoadedImage, rebase_address, dyld_all_image_infos_version, \
    dyld_all_image_infos_v2, dyld_image_info
from kcore.exceptions import NoDylinkerFoundException, UnsupportedAllImageInfosVersionException, \
    BadInputFormatException, MalformedMachOException, MissingSymbolException
from kcore.util import KCORE_VERSION, log, LogLevel, opts
