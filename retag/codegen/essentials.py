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
# essentials.py : Easy import for the synthesis parts
from __future__ import annotations
from typing import Dict, List, Set, Optional, Any, Tuple
import ctypes, enum, sys

# --- Internal Imports ---
from ..errors import (
    ErrorHandler,
    PreconditionError,
    UnsupportedTypeError,
    UnexportedFieldError,
    LayoutMismatchError,
)
from ..semantics.types import *
from ..semantics.tag import StructTag
from ..semantics.cache import Synthesis, TypeCache
from ..utils.helpers import env_flag, env_choice

DEBUG = env_flag("RETAG_DEBUG", False)
ABI_CHECK = env_flag("RETAG_ABI_CHECK", True)

# Kinds the converter never recreates, whatever the mode
REJECTED_KINDS = {Kind.CHAN, Kind.FUNC, Kind.UNSAFE_POINTER}

# --- Enums ---
class CycleMode(str, enum.Enum):
    IGNORE = "ignore"
    ERROR = "error"


def coerce_cycle_mode(mode) -> CycleMode:
    if isinstance(mode, CycleMode):
        return mode
    if isinstance(mode, str):
        for member in CycleMode:
            if mode.lower() == member.value:
                return member
    raise ValueError(f"unknown on_cycle={mode!r} (expected 'ignore' or 'error')")


ON_CYCLE = env_choice("RETAG_ON_CYCLE", CycleMode.IGNORE.value)


class Walk:
    """
    State of one top-level conversion. Never shared between calls.
    `visited` holds the qualified names of structures currently being built;
    `path` holds the "Struct.Field" steps that led to the current type.
    """
    __slots__ = ("lenient", "visited", "path")

    def __init__(self, lenient: bool):
        self.lenient = lenient
        self.visited: Set[str] = set()
        self.path: List[str] = []


class Converter:
    """
    The Converter state passed to every synthesis function.
    Holds the cache, the error handler, the layout verifier and the options.
    """
    # =========================================================================
    # 1. Shared State
    # =========================================================================

    # (source type, maker) -> Synthesis, shared by every call on this converter
    cache: TypeCache

    errors: ErrorHandler

    # None when the ABI step is disabled
    layout: Optional[Any]

    # =========================================================================
    # 2. Options
    # =========================================================================
    on_cycle: CycleMode
    debug: bool

    def trace(self, message: str) -> None: ...
    def get_type(self, t: type, maker, walk: Walk) -> Synthesis: ...
    def make_type(self, t: type, maker, walk: Walk) -> Synthesis: ...
    def make_struct_type(self, struct_type: type, maker, walk: Walk) -> Synthesis: ...
    def build_struct_type(self, struct_type: type, new_fields: List[Field], tags: Dict[str, str]) -> type: ...
    def compare_struct_types(self, source: type, result: type) -> None: ...
