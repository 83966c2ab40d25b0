#
#  kcore | klayout
#  registry.py
#
#  LayoutManager, the container that hands out Layouts for types.
#
#  Layouts come from three places, checked in this order:
#    1. explicit registrations (and anything a provider produced earlier, which gets cached alongside them)
#    2. the provider chain, first provider to return something wins
#    3. nothing, which is an error
#
#  Nothing is ever evicted. The set of types a program reads is small and fixed.
#
#  This file is part of kcore. kcore is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

from typing import Callable, Dict, List, Optional, Tuple

from klayout.exceptions import DuplicateLayoutException, InvalidArrayTypeException, LayoutException
from klayout.layout import ArrayLayout, ArrayType, Layout, type_name
from klayout.log import log

LayoutProvider = Callable[[object, 'LayoutManager'], Optional[Layout]]


class LayoutManager:
    def __init__(self):
        self._layouts: Dict[object, Layout] = {}
        self._layout_providers: List[LayoutProvider] = []
        self._array_layouts: Dict[Tuple[object, int], ArrayLayout] = {}

    def register(self, layout: Layout):
        """
        Register a layout under its own type_id.

        :raises DuplicateLayoutException: if that type already has a layout
        """
        if layout.type_id in self._layouts:
            raise DuplicateLayoutException(f'A layout for {type_name(layout.type_id)} is already registered',
                                           layout.type_id)
        self._layouts[layout.type_id] = layout
        log.debug_more(f'Registered {layout}')

    def register_provider(self, provider: LayoutProvider):
        """
        Append a provider to the fallback chain.

        Providers are called as ``provider(type_id, manager)`` and return a Layout or None.
        """
        self._layout_providers.append(provider)

    def resolve(self, type_id) -> Layout:
        layout = self._layouts.get(type_id)
        if layout is not None:
            return layout

        for provider in self._layout_providers:
            layout = provider(type_id, self)
            if layout is not None:
                log.debug(f'Provider {getattr(provider, "__name__", provider)} produced {layout}')
                break

        if layout is None:
            raise LayoutException(f'Unable to create layout for type {type_name(type_id)}', type_id)

        self._layouts[type_id] = layout
        return layout

    def resolve_array(self, array_type: ArrayType, count: int) -> ArrayLayout:
        """
        Layout for `count` elements of a one dimensional array type (see klayout.array_of).

        Identical (element, count) pairs always get the same ArrayLayout instance back.
        """
        if not isinstance(array_type, ArrayType):
            raise InvalidArrayTypeException(f'{type_name(array_type)} is not an array type')
        if array_type.rank != 1:
            raise InvalidArrayTypeException('Multidimensional arrays are not supported')
        if count < 1:
            raise InvalidArrayTypeException(f'Array layouts need at least one element, got {count}')

        key = (array_type.element, count)
        layout = self._array_layouts.get(key)
        if layout is None:
            layout = ArrayLayout(array_type, self.resolve(array_type.element), count)
            self._array_layouts[key] = layout
            log.debug_more(f'Created {layout}')
        return layout

    def __contains__(self, type_id):
        return type_id in self._layouts
