"""
Retag recasts a pointer to a ctypes structure into a pointer to a
runtime-generated analogue of that structure whose fields carry new tags.
No data is copied: the new pointer addresses the same memory.

The analogue is generated from the source type by these rules:
  - Structures get an analogous type whose field tags come from the maker.
  - A pointer, array, slice or map type is replaced when its element, key or
    value type is replaced.
  - Private fields (names starting with "_") keep their type and tag.

convert() raises PreconditionError unless given a pointer to a structure, and
when the maker is not hashable.

convert() raises UnexportedFieldError if the maker changes anything in a
structure with private fields: they could not be kept byte-identical.

Generated types are cached per (source type, maker). See TagMaker for the
rules a maker must follow to keep that cache honest.

Cyclic structures are not supported: a structure met again while it is being
built is left unchanged (or rejected with on_cycle="error").

Function pointers, c_void_p and channels are never supported. py_object fields
are rejected by convert() and left untouched by convert_any().
"""
from .errors import (
    RetagError,
    PreconditionError,
    UnsupportedTypeError,
    UnexportedFieldError,
    LayoutMismatchError,
)
from .semantics.tag import StructTag
from .semantics.types import (
    Kind,
    Field,
    kind_of,
    fields,
    field_tag,
    is_exported,
    source_of,
    slice_of,
    map_of,
    chan_of,
)
from .semantics.cache import Synthesis, TypeCache
from .codegen.essentials import CycleMode
from .codegen.layout import LayoutVerifier
from .tags import TagMaker, RenameKeyMaker, ViewMaker
from .converter import (
    RetagConverter,
    default_converter,
    convert,
    convert_any,
    convert_instance,
)

__version__ = "0.1"

__all__ = [
    "RetagError",
    "PreconditionError",
    "UnsupportedTypeError",
    "UnexportedFieldError",
    "LayoutMismatchError",
    "StructTag",
    "Kind",
    "Field",
    "kind_of",
    "fields",
    "field_tag",
    "is_exported",
    "source_of",
    "slice_of",
    "map_of",
    "chan_of",
    "Synthesis",
    "TypeCache",
    "CycleMode",
    "LayoutVerifier",
    "TagMaker",
    "RenameKeyMaker",
    "ViewMaker",
    "RetagConverter",
    "default_converter",
    "convert",
    "convert_any",
    "convert_instance",
]
