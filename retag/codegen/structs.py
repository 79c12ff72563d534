# =============================================================================
# Retag - Structural Type Recasting for ctypes
#
# Made with ❤️
#
# This project is genuinely built on love, dedication, and care.
# Retag exists not only as a library, but as a labor of passion —
# created for a lover, inspired by curiosity, perseverance, and belief
# in building something meaningful from the ground up.
#
# “What is made with love is never made in vain.”
# “Love is the reason this code exists; logic is how it survives.”
#
# -----------------------------------------------------------------------------
# Author: M1778
# Profile: https://github.com/M1778M/
#
# Socials:
#   Telegram: https://t.me/your_username_here
#   Instagram: https://instagram.com/your_username_here
#   X (Twitter): https://x.com/your_username_here
#
# -----------------------------------------------------------------------------
# Copyright (C) 2025 M1778
#
# This file is part of Retag.
#
# Retag is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Retag is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with Retag.  If not, see <https://www.gnu.org/licenses/>.
#
# -----------------------------------------------------------------------------
# “Code fades. Love leaves a signature.”
# =============================================================================
from .essentials import *

# Class attributes that shape a structure's layout; copied onto every analogue
LAYOUT_ATTRIBUTES = ("_pack_", "_align_", "_layout_", "_anonymous_")
CTYPES_MODULES = ("_ctypes", "ctypes", "ctypes._endian")


# --------------------------------------------------------------------------- M1778, https://github.com/M1778M/
# <Method name=make_struct_type args=[<Converter>, <type>, <TagMaker>, <Walk>]>
# <Description>
# Builds the analogue of a structure.
#
# Logic Flow:
# 1. Exported fields: resolve the field type through the cache and ask the
#    maker for the new tag. Either one differing marks the structure changed.
# 2. Private fields: copied through untouched (type, name and tag).
# 3. Unchanged: the source type itself is returned, no new class is made.
# 4. Changed with private fields: fatal, they must stay byte-identical.
# 5. Otherwise: build the class, then prove it has the source layout.
# </Description>
def make_struct_type(converter: Converter, struct_type: type, maker, walk: Walk) -> Synthesis:
    source_fields = fields(struct_type)
    if not source_fields:
        return Synthesis(struct_type, False, False)

    changed = False
    has_private = False
    has_iface = False
    pending = frozenset()
    new_fields = []
    new_tags = {}

    for field in source_fields:
        if not field.exported:
            has_private = True
            new_fields.append(field)
            new_tags[field.name] = str(field.tag)
            continue

        walk.path.append(f"{type_name(struct_type)}.{field.name}")
        try:
            res = converter.get_type(field.type, maker, walk)
        finally:
            walk.path.pop()
        if res.type is not field.type:
            changed = True
        if res.has_iface:
            has_iface = True
        pending |= res.pending

        new_tag = maker.make_tag(struct_type, field.index)
        if not isinstance(new_tag, str):
            converter.errors.error(
                struct_type,
                f"retag: make_tag returned {type(new_tag).__name__} for field '{field.name}', expected str",
                hint="TagMaker.make_tag must return the tag string.",
                path=walk.path,
                exc=PreconditionError,
            )
        if new_tag != field.tag:
            changed = True

        new_fields.append(field._replace(type=res.type, tag=StructTag(new_tag)))
        new_tags[field.name] = str(new_tag)

    if not changed:
        return Synthesis(struct_type, False, has_iface, pending)

    if has_private:
        private = ", ".join(f.name for f in source_fields if not f.exported)
        converter.errors.error(
            struct_type,
            f"unable to change tags for type {qualified_name(struct_type)}, because it contains unexported fields",
            hint=f"Private fields ({private}) must stay byte-identical; export them or keep the maker from touching this type.",
            path=walk.path,
            exc=UnexportedFieldError,
        )

    new_type = converter.build_struct_type(struct_type, new_fields, new_tags)
    converter.compare_struct_types(struct_type, new_type)
    if converter.debug:
        print(f"[DEBUG RETAG] built analogue of {qualified_name(struct_type)} ({ctypes.sizeof(new_type)} bytes)", file=sys.stderr)
    return Synthesis(new_type, True, has_iface, pending)


# <Method name=build_struct_type args=[<Converter>, <type>, <List[Field]>, <Dict[str, str]>]>
# <Description>
# Creates the new class with the same ctypes base, name and layout attributes
# as the source. An inherited structure is rebuilt level by level: each class
# that declares _fields_ gets an analogue subclassing the previous one, so
# every level starts where ctypes started it (after the base's tail padding).
# </Description>
def build_struct_type(converter: Converter, struct_type: type, new_fields: List[Field], tags: Dict[str, str]) -> type:
    base = _ctypes_base(struct_type)
    levels = field_levels(struct_type)

    start = 0
    for i, (owner, own_fields) in enumerate(levels):
        level_fields = new_fields[start:start + len(own_fields)]
        start += len(own_fields)
        # The last level is the analogue itself, whatever class declared its fields
        source = struct_type if i == len(levels) - 1 else owner
        base = _build_level(source, base, level_fields, {f.name: tags[f.name] for f in level_fields})
    return base


def _build_level(source: type, base: type, level_fields: List[Field], tags: Dict[str, str]) -> type:
    namespace = {
        "__module__": source.__module__,
        "__qualname__": type_name(source),
        "__doc__": source.__doc__,
        "_tags_": tags,
        "_retag_source_": source_of(source),
    }
    # ctypes reads these through the MRO when a level's _fields_ is set
    for attr in LAYOUT_ATTRIBUTES:
        value = getattr(source, attr, None)
        if value is not None:
            namespace[attr] = value
    namespace["_fields_"] = [field.spec() for field in level_fields]
    return type(base)(source.__name__, (base,), namespace)


def _ctypes_base(struct_type: type) -> type:
    # First class in the MRO that ctypes itself defines (Structure, Union, BigEndianStructure...)
    for cls in struct_type.__mro__:
        if cls.__module__ in CTYPES_MODULES and issubclass(cls, (ctypes.Structure, ctypes.Union)):
            return cls
    return ctypes.Union if issubclass(struct_type, ctypes.Union) else ctypes.Structure


# <Method name=compare_struct_types args=[<Converter>, <type>, <type>]>
# <Description>
# The pointer cast in convert() is only sound if both types occupy the same
# bytes. Checks size, then every field offset, then (when enabled) that the
# new ctypes layout matches the native ABI computed by LLVM.
# </Description>
def compare_struct_types(converter: Converter, source: type, result: type) -> None:
    source_size, source_fields = layout_of(source)
    result_size, result_fields = layout_of(result)

    if source_size != result_size:
        converter.errors.error(
            source,
            f"retag: unexpected case - type has a size different from size of original type ({result_size} != {source_size})",
            exc=LayoutMismatchError,
        )

    if source_fields != result_fields:
        converter.errors.error(
            source,
            "retag: unexpected case - field offsets differ from the original type",
            hint=f"original {source_fields}, analogue {result_fields}",
            exc=LayoutMismatchError,
        )

    if converter.layout is None:
        return
    problems = converter.layout.verify(result)
    if problems:
        detail = ", ".join(f"{label}: ctypes={ours} abi={theirs}" for label, ours, theirs in problems)
        converter.errors.error(
            source,
            f"retag: ctypes layout of the analogue disagrees with the target ABI ({detail})",
            hint="Disable the ABI step with abi_check=False or RETAG_ABI_CHECK=0 if the type is laid out on purpose.",
            exc=LayoutMismatchError,
        )
