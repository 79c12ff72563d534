import ctypes
import enum
import threading
from typing import Dict, List, NamedTuple, Optional, Tuple

from .tag import StructTag


class Kind(str, enum.Enum):
    STRUCT = "struct"
    POINTER = "ptr"
    ARRAY = "array"
    SLICE = "slice"
    MAP = "map"
    INTERFACE = "interface"
    CHAN = "chan"
    FUNC = "func"
    UNSAFE_POINTER = "unsafe.Pointer"
    PRIMITIVE = "primitive"


# --- Runtime Headers ---
# ctypes has no dynamic arrays, maps or channels. These are their in-memory
# headers: the element types ride along as class attributes.
class SliceHeader(ctypes.Structure):
    """{ T* data, ssize_t len, ssize_t cap }"""
    _elem_type_ = None


class MapHeader(ctypes.Structure):
    """Opaque handle to a hash map of _key_type_ -> _elem_type_."""
    _key_type_ = None
    _elem_type_ = None


class ChanHeader(ctypes.Structure):
    """Opaque handle to a channel of _elem_type_."""
    _elem_type_ = None


_header_types: Dict[tuple, type] = {}
_header_lock = threading.Lock()


def _header_type(base, args, name, namespace):
    key = (base,) + args
    with _header_lock:
        cls = _header_types.get(key)
        if cls is None:
            namespace["__module__"] = __name__
            cls = type(base)(name, (base,), namespace)
            _header_types[key] = cls
        return cls


def slice_of(elem: type) -> type:
    return _header_type(SliceHeader, (elem,), f"[]{type_name(elem)}", {
        "_elem_type_": elem,
        "_fields_": [
            ("data", ctypes.POINTER(elem)),
            ("len", ctypes.c_ssize_t),
            ("cap", ctypes.c_ssize_t),
        ],
    })


def map_of(key: type, elem: type) -> type:
    return _header_type(MapHeader, (key, elem), f"map[{type_name(key)}]{type_name(elem)}", {
        "_key_type_": key,
        "_elem_type_": elem,
        "_fields_": [("handle", ctypes.c_void_p)],
    })


def chan_of(elem: type) -> type:
    return _header_type(ChanHeader, (elem,), f"chan {type_name(elem)}", {
        "_elem_type_": elem,
        "_fields_": [("handle", ctypes.c_void_p)],
    })


# <Method name=kind_of args=[<type>]>
# <Description>
# Classifies a ctypes type. Header types are checked before plain structures
# because they are structures too.
# </Description>
def kind_of(t) -> Kind:
    if not isinstance(t, type):
        return Kind.PRIMITIVE
    if issubclass(t, SliceHeader):
        return Kind.SLICE
    if issubclass(t, MapHeader):
        return Kind.MAP
    if issubclass(t, ChanHeader):
        return Kind.CHAN
    if issubclass(t, (ctypes.Structure, ctypes.Union)):
        return Kind.STRUCT
    if issubclass(t, ctypes._Pointer):
        return Kind.POINTER
    if issubclass(t, ctypes.Array):
        return Kind.ARRAY
    if issubclass(t, ctypes._CFuncPtr):
        return Kind.FUNC
    if issubclass(t, ctypes.py_object):
        return Kind.INTERFACE
    if issubclass(t, ctypes.c_void_p):
        return Kind.UNSAFE_POINTER
    return Kind.PRIMITIVE


def type_name(t) -> str:
    return getattr(t, "__qualname__", None) or getattr(t, "__name__", repr(t))


def qualified_name(t) -> str:
    return f"{t.__module__}.{type_name(t)}"


def is_exported(name: str) -> bool:
    return not name.startswith("_")


class Field(NamedTuple):
    index: int
    name: str
    type: type
    tag: StructTag
    offset: int
    size: int
    bits: Optional[int] = None

    @property
    def exported(self) -> bool:
        return is_exported(self.name)

    def spec(self) -> tuple:
        """The `_fields_` entry for this field."""
        if self.bits is None:
            return (self.name, self.type)
        return (self.name, self.type, self.bits)


def field_owners(struct_type) -> List[type]:
    """Classes of the MRO that declare `_fields_`, base first."""
    return [cls for cls in reversed(struct_type.__mro__) if "_fields_" in cls.__dict__]


def struct_tags(struct_type) -> Dict[str, str]:
    tags: Dict[str, str] = {}
    for cls in reversed(struct_type.__mro__):
        own = cls.__dict__.get("_tags_")
        if own:
            tags.update(own)
    return tags


def fields(struct_type) -> List[Field]:
    tags = struct_tags(struct_type)
    out: List[Field] = []
    for cls in field_owners(struct_type):
        for entry in cls.__dict__["_fields_"]:
            name, ftype = entry[0], entry[1]
            bits = entry[2] if len(entry) > 2 else None
            descriptor = cls.__dict__[name]
            out.append(Field(
                index=len(out),
                name=name,
                type=ftype,
                tag=StructTag(tags.get(name, "")),
                offset=descriptor.offset,
                size=descriptor.size,
                bits=bits,
            ))
    return out


def field_levels(struct_type) -> List[Tuple[type, List[Field]]]:
    """
    fields() grouped by the class that declares them, base first. ctypes lays
    out each level after the whole of the previous one, tail padding included.
    """
    flat = fields(struct_type)
    levels = []
    start = 0
    for cls in field_owners(struct_type):
        count = len(cls.__dict__["_fields_"])
        levels.append((cls, flat[start:start + count]))
        start += count
    return levels


def field_tag(struct_type, name: str) -> StructTag:
    return StructTag(struct_tags(struct_type).get(name, ""))


def source_of(t) -> type:
    """The user-declared type a synthesized type was derived from (or `t` itself)."""
    return getattr(t, "_retag_source_", None) or t


def layout_of(struct_type) -> Tuple[int, List[Tuple[int, int]]]:
    return ctypes.sizeof(struct_type), [(f.offset, f.size) for f in fields(struct_type)]


__all__ = [
    "Kind",
    "SliceHeader",
    "MapHeader",
    "ChanHeader",
    "slice_of",
    "map_of",
    "chan_of",
    "kind_of",
    "type_name",
    "qualified_name",
    "is_exported",
    "Field",
    "fields",
    "field_owners",
    "field_levels",
    "struct_tags",
    "field_tag",
    "source_of",
    "layout_of",
]
