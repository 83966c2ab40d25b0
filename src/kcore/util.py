#
#  kcore | kcore
#  util.py
#
#  Miscellaneous utilities used around kcore
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2021.
#

import json
import sys

from pygments import highlight
from pygments.formatters.terminal import TerminalFormatter
from pygments.lexers.data import JsonLexer

from klayout.log import log, LogLevel

try:
    from importlib.metadata import version, PackageNotFoundError
    KCORE_VERSION = version('kcore')
except PackageNotFoundError:
    KCORE_VERSION = '1.0.0'

OUT_IS_TTY = sys.stdout.isatty()


class opts:
    DISABLE_COLOR = False


def highlight_json(text):
    if opts.DISABLE_COLOR:
        return text
    return highlight(text, JsonLexer(), TerminalFormatter())


def to_json(item, color=None):
    """
    Serialize something with a .serialize() (or an already serialized dict/list) to indented JSON

    :param item:
    :param color: highlight the output; defaults to whether stdout is a terminal
    :return:
    """
    if hasattr(item, 'serialize'):
        item = item.serialize()
    text = json.dumps(item, indent=2)
    if color is None:
        color = OUT_IS_TTY
    return highlight_json(text) if color else text
