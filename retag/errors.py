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
import sys


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[38;5;196m"
    BLUE = "\033[38;5;39m"
    CYAN = "\033[38;5;51m"
    GRAY = "\033[38;5;240m"


class RetagError(Exception):
    """Custom exception to stop a conversion. Every one is a caller bug, never transient."""

    def __init__(self, message, ctype=None, path=(), hint=None):
        super().__init__(message)
        self.message = message
        self.ctype = ctype
        self.path = tuple(path)
        self.hint = hint


class PreconditionError(RetagError, TypeError):
    """The argument is not a pointer to a structure, or the maker breaks its contract."""


class UnsupportedTypeError(RetagError, TypeError):
    """A reachable member has a kind the converter refuses to recreate."""


class UnexportedFieldError(RetagError):
    """A structure needs new tags but holds private fields."""


class LayoutMismatchError(RetagError):
    """The synthesized type would not alias the original memory byte for byte."""


class ErrorHandler:
    def __init__(self, stream=None, color=None):
        self.stream = stream
        if color is None:
            color = bool(stream is not None and getattr(stream, "isatty", lambda: False)())
        self.color = color
        self.had_error = False

    def _paint(self, code, text):
        if not self.color:
            return text
        return f"{code}{text}{Colors.RESET}"

    def error(self, ctype, message, hint=None, path=(), exc=RetagError):
        """
        Reports a conversion error pointing to the type (and the field path that reached it),
        then raises `exc`.
        """
        self.had_error = True

        if self.stream is not None:
            self.report(ctype, message, hint=hint, path=path)

        raise exc(message, ctype=ctype, path=path, hint=hint)

    def report(self, ctype, message, hint=None, path=()):
        out = self.stream if self.stream is not None else sys.stderr
        head = self._paint(Colors.RED + Colors.BOLD, "error:")
        arrow = self._paint(Colors.BLUE, "   -->")
        print(f"\n{head} {message}", file=out)

        if ctype is not None:
            name = getattr(ctype, "__qualname__", getattr(ctype, "__name__", repr(ctype)))
            module = getattr(ctype, "__module__", "?")
            print(f"{arrow} {module}.{name}", file=out)
        else:
            print(f"{arrow} [Unknown Type]", file=out)

        if path:
            pad = self._paint(Colors.BLUE, "    |")
            print(f"{pad} via {' -> '.join(path)}", file=out)

        if hint:
            print(f"{self._paint(Colors.CYAN, '   = help:')} {hint}", file=out)


__all__ = [
    "Colors",
    "RetagError",
    "PreconditionError",
    "UnsupportedTypeError",
    "UnexportedFieldError",
    "LayoutMismatchError",
    "ErrorHandler",
]
