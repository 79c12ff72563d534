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
""" Retag - Conversion Facade """
import threading

from .codegen.essentials import *
from .codegen.types import get_type, make_type
from .codegen.structs import make_struct_type, build_struct_type, compare_struct_types
from .codegen.layout import LayoutVerifier


class RetagConverter:
    # =========================================================================
    # CORE METHODS (Signatures)
    # =========================================================================

    # --- Type Synthesis (retag/codegen/types.py) ---
    get_type = get_type

    make_type = make_type

    # --- Structures (retag/codegen/structs.py) ---
    make_struct_type = make_struct_type

    build_struct_type = build_struct_type

    compare_struct_types = compare_struct_types

    def __init__(self, cache=None, abi_check=None, on_cycle=None, debug=None, error_stream=None):
        self.cache = cache if cache is not None else TypeCache()
        self.errors = ErrorHandler(stream=error_stream)
        self.on_cycle = coerce_cycle_mode(ON_CYCLE if on_cycle is None else on_cycle)
        self.debug = DEBUG if debug is None else debug

        if abi_check is None:
            abi_check = ABI_CHECK
        self.layout = LayoutVerifier() if abi_check else None

    def trace(self, message: str) -> None:
        if self.debug:
            print(f"[DEBUG RETAG] {message}", file=sys.stderr)

    # =========================================================================
    # PUBLIC SURFACE
    # =========================================================================

    def convert(self, p, maker):
        """
        Returns a pointer to the same memory as `p` whose type carries the tags
        produced by `maker`. See module docs of `retag` for the rules.
        """
        return self._convert(p, maker, False)

    def convert_any(self, p, maker):
        """Like convert(), but py_object fields are left unchanged instead of failing."""
        return self._convert(p, maker, True)

    def resolve(self, struct_type: type, maker, lenient: bool = False) -> Synthesis:
        """Returns the Synthesis for `struct_type` without touching any memory."""
        self._check_maker(struct_type, maker)
        return self.get_type(struct_type, maker, Walk(lenient))

    def convert_instance(self, obj, maker, lenient: bool = False):
        """
        Instance flavour of convert(): returns `obj` itself when nothing changes,
        otherwise a view of the analogue type over the same buffer.
        """
        struct_type = type(obj)
        if kind_of(struct_type) != Kind.STRUCT:
            self.errors.error(
                struct_type,
                f"retag: expected a structure instance, got {type_name(struct_type)}",
                hint="Pass a ctypes.Structure or ctypes.Union instance.",
                exc=PreconditionError,
            )
        res = self.resolve(struct_type, maker, lenient)
        if not res.changed:
            return obj
        return res.type.from_buffer(obj)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _convert(self, p, maker, lenient: bool):
        ptr_type = type(p)
        if kind_of(ptr_type) != Kind.POINTER or kind_of(ptr_type._type_) != Kind.STRUCT:
            self.errors.error(
                ptr_type,
                f"retag: expected a pointer to a structure, got {type_name(ptr_type)}",
                hint="Wrap the instance with ctypes.pointer(obj), or use convert_instance().",
                exc=PreconditionError,
            )
        res = self.resolve(ptr_type._type_, maker, lenient)
        if not res.changed:
            return p
        # Same address, new type. Sound only because compare_struct_types passed.
        return ctypes.cast(p, ctypes.POINTER(res.type))

    def _check_maker(self, struct_type: type, maker) -> None:
        if not callable(getattr(maker, "make_tag", None)):
            self.errors.error(
                struct_type,
                f"retag: {type(maker).__name__} has no make_tag(struct_type, field_index) method",
                exc=PreconditionError,
            )
        try:
            hash(maker)
        except TypeError:
            self.errors.error(
                struct_type,
                f"retag: maker of type {type(maker).__name__} is not hashable",
                hint="Makers are cache keys; use a frozen dataclass or define __eq__ and __hash__.",
                exc=PreconditionError,
            )


# --- Process-wide Converter ---
_default_converter: Optional[RetagConverter] = None
_default_lock = threading.Lock()


def default_converter() -> RetagConverter:
    global _default_converter
    if _default_converter is None:
        with _default_lock:
            if _default_converter is None:
                _default_converter = RetagConverter()
    return _default_converter


def convert(p, maker):
    return default_converter().convert(p, maker)


def convert_any(p, maker):
    return default_converter().convert_any(p, maker)


def convert_instance(obj, maker, lenient: bool = False):
    return default_converter().convert_instance(obj, maker, lenient)


__all__ = [
    "RetagConverter",
    "default_converter",
    "convert",
    "convert_any",
    "convert_instance",
]
