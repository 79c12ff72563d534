from .essentials import *


# <Method name=get_type args=[<Converter>, <type>, <TagMaker>, <Walk>]>
# <Description>
# Cache front for make_type. Every nested type goes through here, so results
# are memoised at every level, not only for the top-level structure.
# A hit computed in lenient mode that contains an interface is stale for a
# strict caller and is rebuilt (and overwritten).
# Results that lean on a structure still being built (a cycle) are returned
# but not stored: they are only right inside that build.
# </Description>
def get_type(converter: Converter, t: type, maker, walk: Walk) -> Synthesis:
    res = converter.cache.lookup(t, maker)
    if res is None or (res.has_iface and not walk.lenient):
        res = converter.make_type(t, maker, walk)
        if not res.pending:
            converter.cache.store(t, maker, res)
    return res


# <Method name=make_type args=[<Converter>, <type>, <TagMaker>, <Walk>]>
# <Description>
# Builds the analogue of a type, dispatched by kind:
# 1. Structures: field by field (see structs.py), guarded against cycles.
# 2. Pointers, arrays, slices: rebuilt over the new element type if it changed.
# 3. Maps: rebuilt if the key or the value changed.
# 4. Interfaces: passed through in lenient mode, rejected in strict mode.
# 5. Channels, functions, raw pointers: always rejected.
# 6. Everything else is a leaf and never changes.
# </Description>
def make_type(converter: Converter, t: type, maker, walk: Walk) -> Synthesis:
    kind = kind_of(t)

    if kind == Kind.STRUCT:
        key = qualified_name(t)
        if key in walk.visited:
            return _revisit(converter, t, walk)
        walk.visited.add(key)
        try:
            res = converter.make_struct_type(t, maker, walk)
        finally:
            walk.visited.discard(key)
        if key in res.pending:
            # The cycle closes here
            res = res._replace(pending=res.pending - {key})
        return res

    if kind == Kind.POINTER:
        res = converter.get_type(t._type_, maker, walk)
        if not res.changed:
            return res._replace(type=t)
        return res._replace(type=ctypes.POINTER(res.type))

    if kind == Kind.ARRAY:
        res = converter.get_type(t._type_, maker, walk)
        if not res.changed:
            return res._replace(type=t)
        return res._replace(type=res.type * t._length_)

    if kind == Kind.SLICE:
        res = converter.get_type(t._elem_type_, maker, walk)
        if not res.changed:
            return res._replace(type=t)
        return res._replace(type=slice_of(res.type))

    if kind == Kind.MAP:
        res_key = converter.get_type(t._key_type_, maker, walk)
        res_elem = converter.get_type(t._elem_type_, maker, walk)
        has_iface = res_key.has_iface or res_elem.has_iface
        pending = res_key.pending | res_elem.pending
        if not res_key.changed and not res_elem.changed:
            return Synthesis(t, False, has_iface, pending)
        return Synthesis(map_of(res_key.type, res_elem.type), True, has_iface, pending)

    if kind == Kind.INTERFACE and walk.lenient:
        return Synthesis(t, False, True)

    if kind == Kind.INTERFACE or kind in REJECTED_KINDS:
        converter.errors.error(
            t,
            f"retag: unsupported type: {kind.value} ({type_name(t)})",
            hint=_UNSUPPORTED_HINTS[kind],
            path=walk.path,
            exc=UnsupportedTypeError,
        )

    # don't modify type in another case
    return Synthesis(t, False, False)


_UNSUPPORTED_HINTS = {
    Kind.INTERFACE: "py_object fields are only left untouched by convert_any().",
    Kind.CHAN: "Channels cannot be recreated; keep them in a private field or behind a c_void_p you own.",
    Kind.FUNC: "Function pointers cannot be recreated; keep them in a private field.",
    Kind.UNSAFE_POINTER: "Raw c_void_p members are not supported; use a typed POINTER(T).",
}


def _revisit(converter: Converter, t: type, walk: Walk) -> Synthesis:
    # A structure reached again while it is still being built: a cycle.
    if converter.on_cycle == CycleMode.ERROR:
        converter.errors.error(
            t,
            f"retag: cyclic reference to {type_name(t)} is not supported",
            hint="Cyclic structures cannot be recreated with new tags.",
            path=walk.path,
            exc=UnsupportedTypeError,
        )
    converter.trace(f"cycle through {qualified_name(t)}; treating it as unchanged")
    return Synthesis(t, False, False, frozenset([qualified_name(t)]))
