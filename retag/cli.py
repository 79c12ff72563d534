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
""" Retag - Command Line Driver """
import argparse
import ctypes
import sys

from .errors import RetagError
from .semantics.types import Kind, fields, kind_of, type_name
from .tags import RenameKeyMaker, ViewMaker
from .converter import RetagConverter
from .utils.helpers import load_object


def describe_layout(struct_type, converter=None, out=None):
    """Prints the field table of a structure and the ABI verdict."""
    out = out or sys.stdout
    print(f"{type_name(struct_type)} ({ctypes.sizeof(struct_type)} bytes)", file=out)
    for field in fields(struct_type):
        bits = f":{field.bits}" if field.bits is not None else ""
        access = "" if field.exported else " (private)"
        print(
            f"  {field.offset:>6} {field.size:>4}  {field.name}{bits}{access}  "
            f"{kind_of(field.type).value} {type_name(field.type)}  {str(field.tag) or '-'}",
            file=out,
        )

    layout = converter.layout if converter is not None else None
    if layout is None:
        print("  abi: not checked", file=out)
        return
    if layout.abi_size(struct_type) is None:
        print("  abi: not expressible in LLVM, skipped", file=out)
        return
    problems = layout.verify(struct_type)
    if not problems:
        print(f"  abi: ok ({layout.target_triple})", file=out)
        return
    for label, ours, theirs in problems:
        print(f"  abi: {label} ctypes={ours} abi={theirs}", file=out)


def _maker_from_args(args):
    if args.maker:
        return load_object(args.maker)
    if args.rename:
        source, sep, target = args.rename.partition(":")
        if not sep or not source or not target:
            raise ValueError(f"Expected --rename SRC:DST, got '{args.rename}'.")
        return RenameKeyMaker(source, target)
    return ViewMaker(args.view)


def build_parser():
    prs = argparse.ArgumentParser(prog="retag", description="Retag - structural type recasting for ctypes")
    prs.add_argument(
        "--no-abi-check", action="store_true", help="Skip the LLVM ABI layout check"
    )
    prs.add_argument(
        "-d", "--debug", action="store_true", help="Print [DEBUG RETAG] traces to stderr"
    )
    sub = prs.add_subparsers(dest="command", required=True)

    layout = sub.add_parser("layout", help="Print the layout and tags of a structure")
    layout.add_argument("type", help="Structure as module:Name")

    conv = sub.add_parser("convert", help="Print the analogue a maker produces for a structure")
    conv.add_argument("type", help="Structure as module:Name")
    group = conv.add_mutually_exclusive_group(required=True)
    group.add_argument("--maker", help="TagMaker instance as module:name")
    group.add_argument("--rename", help="Copy tag key SRC to DST (SRC:DST)")
    group.add_argument("--view", help="Hide fields whose view tag does not list VIEW")
    conv.add_argument(
        "--lenient", action="store_true", help="Leave py_object fields unchanged instead of failing"
    )
    return prs


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        struct_type = load_object(args.type)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"Error: cannot load '{args.type}': {e}", file=sys.stderr)
        return 2
    if kind_of(struct_type) != Kind.STRUCT:
        print(f"Error: '{args.type}' is not a ctypes structure.", file=sys.stderr)
        return 2

    converter = RetagConverter(
        abi_check=not args.no_abi_check,
        debug=args.debug,
        error_stream=sys.stderr,
    )

    if args.command == "layout":
        describe_layout(struct_type, converter)
        return 0

    try:
        maker = _maker_from_args(args)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"Error: cannot build maker: {e}", file=sys.stderr)
        return 2

    try:
        res = converter.resolve(struct_type, maker, lenient=args.lenient)
    except RetagError:
        # Already reported on stderr by the error handler
        return 1

    if not res.changed:
        print(f"{type_name(struct_type)}: unchanged", file=sys.stdout)
    describe_layout(res.type, converter)
    if res.has_iface:
        print("  note: contains py_object fields left untouched", file=sys.stdout)
    return 0
