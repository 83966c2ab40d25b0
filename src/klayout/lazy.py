#
#  kcore | klayout
#  lazy.py
#
#  Lazily computed, memoized values.
#
#  The factory runs at most once per successful evaluation. First access is guarded by a lock, so two threads
#    racing on an unevaluated cell still only run the factory once.
#
#  If the factory raises, the exception goes to the caller and the cell stays unevaluated; the next access runs the
#    factory again. Nothing here retries on its own.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

import threading

_UNSET = object()


class Lazy:
    def __init__(self, factory):
        self._factory = factory
        self._value = _UNSET
        self._lock = threading.Lock()

    @property
    def is_value_created(self) -> bool:
        return self._value is not _UNSET

    @property
    def value(self):
        value = self._value
        if value is not _UNSET:
            return value
        with self._lock:
            if self._value is _UNSET:
                self._value = self._factory()
            return self._value

    def __repr__(self):
        if self.is_value_created:
            return f'Lazy({self._value!r})'
        return 'Lazy(<unevaluated>)'
