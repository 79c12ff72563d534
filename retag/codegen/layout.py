import threading

from llvmlite import ir, binding
from .essentials import *

# ctypes `_type_` codes of integer-like simple types (bool and chars included)
INT_CODES = set("bBhHiIlLqQ?cuv")
POINTER_CODES = set("zZPO")

# LLVM calls release the GIL and every verifier shares the global context
_llvm_lock = threading.RLock()


class LayoutVerifier:
    """
    Computes native ABI layouts with LLVM's data layout for the host target and
    compares them with what ctypes laid out.
    """

    def __init__(self):
        binding.initialize_native_target()
        binding.initialize_native_asmprinter()

        self.target_triple = binding.get_default_triple()
        self.target = binding.Target.from_triple(self.target_triple)
        self.target_machine = self.target.create_target_machine()
        self.data_layout_obj = self.target_machine.target_data

        # Registries
        self.llvm_types: Dict[type, Optional[ir.Type]] = {}

    # <Method name=llvm_type args=[<type>]>
    # <Description>
    # Lowers a ctypes type to an LLVM type. Returns None when LLVM cannot
    # express the ctypes layout faithfully (unions, bit fields, packing,
    # forced alignment, wide long double), in which case no ABI check is made.
    # </Description>
    def llvm_type(self, t: type) -> Optional[ir.Type]:
        if t in self.llvm_types:
            return self.llvm_types[t]
        llty = self._lower(t)
        self.llvm_types[t] = llty
        return llty

    def _lower(self, t: type) -> Optional[ir.Type]:
        if issubclass(t, ctypes.Union):
            return None
        if issubclass(t, ctypes.Structure):
            if any(getattr(t, attr, None) for attr in ("_pack_", "_align_", "_layout_")):
                return None
            levels = field_levels(t)
            if not levels:
                return ir.LiteralStructType([])
            members = []
            if len(levels) > 1:
                # A subclass is laid out after the whole base, like a leading member
                inherited = self.llvm_type(levels[-2][0])
                if inherited is None:
                    return None
                members.append(inherited)
            for field in levels[-1][1]:
                if field.bits is not None:
                    return None
                member = self.llvm_type(field.type)
                if member is None:
                    return None
                members.append(member)
            return ir.LiteralStructType(members)

        kind = kind_of(t)
        if kind in (Kind.POINTER, Kind.FUNC, Kind.UNSAFE_POINTER, Kind.INTERFACE):
            return ir.IntType(8).as_pointer()
        if kind == Kind.ARRAY:
            elem = self.llvm_type(t._type_)
            if elem is None:
                return None
            return ir.ArrayType(elem, t._length_)

        code = getattr(t, "_type_", None)
        if not isinstance(code, str):
            return None
        if code in INT_CODES:
            return ir.IntType(ctypes.sizeof(t) * 8)
        if code in POINTER_CODES:
            return ir.IntType(8).as_pointer()
        if code == "f":
            return ir.FloatType()
        if code == "d" or (code == "g" and ctypes.sizeof(t) == 8):
            return ir.DoubleType()
        return None

    def abi_size(self, t: type) -> Optional[int]:
        llty = self.llvm_type(t)
        if llty is None:
            return None
        with _llvm_lock:
            return llty.get_abi_size(self.data_layout_obj)

    def abi_offsets(self, t: type) -> Optional[List[int]]:
        """
        Field offsets of a structure, following LLVM's sequential layout:
        each member starts at the previous end rounded up to its ABI alignment.
        """
        llty = self.llvm_type(t)
        if not isinstance(llty, ir.LiteralStructType):
            return None
        offsets = []
        end = 0
        with _llvm_lock:
            for member in llty.elements:
                align = member.get_abi_alignment(self.data_layout_obj)
                start = -(-end // align) * align
                offsets.append(start)
                end = start + member.get_abi_size(self.data_layout_obj)
        levels = field_levels(t)
        if len(levels) > 1:
            return self.abi_offsets(levels[-2][0]) + offsets[1:]
        return offsets

    def verify(self, t: type) -> List[Tuple[str, int, int]]:
        """Returns (label, ctypes value, ABI value) for every disagreement."""
        size = self.abi_size(t)
        if size is None:
            return []
        problems = []
        if size != ctypes.sizeof(t):
            problems.append(("size", ctypes.sizeof(t), size))
        offsets = self.abi_offsets(t)
        if offsets is not None:
            for field, offset in zip(fields(t), offsets):
                if field.offset != offset:
                    problems.append((field.name, field.offset, offset))
        return problems
