import ctypes
import threading

import pytest

import retag
from makers import (
    BadMaker,
    ConstMaker,
    KeepMaker,
    NameMaker,
    OnlyTypeMaker,
    UnhashableMaker,
)


class Inner(ctypes.Structure):
    _fields_ = [("Value", ctypes.c_int32), ("Name", ctypes.c_char_p)]
    _tags_ = {"Value": 'json:"value"'}


class Outer(ctypes.Structure):
    _fields_ = [("ID", ctypes.c_int64), ("Child", ctypes.POINTER(Inner))]


class WithPrivate(ctypes.Structure):
    _fields_ = [("Public", ctypes.c_int32), ("_secret", ctypes.c_int32)]
    _tags_ = {"Public": 'json:"public"', "_secret": 'internal:"1"'}


class Holder(ctypes.Structure):
    _fields_ = [("Guarded", WithPrivate), ("Count", ctypes.c_int32)]


class WithObject(ctypes.Structure):
    _fields_ = [("Payload", ctypes.py_object), ("N", ctypes.c_int32)]


class PointsToObject(ctypes.Structure):
    _fields_ = [("Ptr", ctypes.POINTER(WithObject)), ("Flag", ctypes.c_bool)]


class Item(ctypes.Structure):
    _fields_ = [("Code", ctypes.c_int32)]


class Bag(ctypes.Structure):
    _fields_ = [
        ("Items", Item * 3),
        ("More", retag.slice_of(Item)),
        ("Index", retag.map_of(ctypes.c_int32, Item)),
        ("Count", ctypes.c_int32),
    ]


class Node(ctypes.Structure):
    pass


Node._fields_ = [("Value", ctypes.c_int32), ("Next", ctypes.POINTER(Node))]


class Number(ctypes.Union):
    _fields_ = [("I", ctypes.c_int64), ("F", ctypes.c_double)]


class Base(ctypes.Structure):
    _fields_ = [("A", ctypes.c_int8)]
    _tags_ = {"A": 'json:"a,omitempty"'}


class Derived(Base):
    _fields_ = [("B", ctypes.c_double)]


class PadBase(ctypes.Structure):
    _fields_ = [("A", ctypes.c_int64), ("B", ctypes.c_int8)]
    _tags_ = {"B": 'json:"b"'}


class PadDerived(PadBase):
    _fields_ = [("C", ctypes.c_int8)]


class Word(ctypes.Union):
    _fields_ = [("I", ctypes.c_int32), ("F", ctypes.c_float)]


class Half(ctypes.Union):
    _fields_ = [("H", ctypes.c_int16), ("Lo", ctypes.c_int8)]


class AnonBase(ctypes.Structure):
    _anonymous_ = ("w",)
    _fields_ = [("w", Word), ("Kind", ctypes.c_int32)]


class AnonDerived(AnonBase):
    _anonymous_ = ("h",)
    _fields_ = [("h", Half), ("Extra", ctypes.c_int32)]


class NodeHolder(ctypes.Structure):
    _fields_ = [("Head", ctypes.POINTER(Node)), ("Size", ctypes.c_int32)]


class Packed(ctypes.Structure):
    _pack_ = 1
    _layout_ = "ms"
    _fields_ = [("A", ctypes.c_char), ("B", ctypes.c_int32)]


CALLBACK = ctypes.CFUNCTYPE(ctypes.c_int, ctypes.c_int)


class WithCallback(ctypes.Structure):
    _fields_ = [("Count", ctypes.c_int32), ("OnEvent", CALLBACK)]


class WithRaw(ctypes.Structure):
    _fields_ = [("Count", ctypes.c_int32), ("Raw", ctypes.c_void_p)]


class WithChan(ctypes.Structure):
    _fields_ = [("Count", ctypes.c_int32), ("Events", retag.chan_of(ctypes.c_int32))]


class PrivateCallback(ctypes.Structure):
    _fields_ = [("Count", ctypes.c_int32), ("_on_event", CALLBACK)]


def target(p):
    return type(p)._type_


# --- Basic conversion ---

def test_convert_aliases_the_same_memory(converter):
    inner = Inner(Value=3, Name=b"three")
    outer = Outer(ID=7, Child=ctypes.pointer(inner))
    p = ctypes.pointer(outer)

    q = converter.convert(p, NameMaker())

    assert target(q) is not Outer
    assert ctypes.addressof(q.contents) == ctypes.addressof(outer)
    assert q.contents.ID == 7
    assert q.contents.Child.contents.Value == 3
    assert q.contents.Child.contents.Name == b"three"

    q.contents.ID = 9
    q.contents.Child.contents.Value = 4
    assert outer.ID == 9
    assert inner.Value == 4


def test_convert_sets_tags_from_maker(converter):
    q = converter.convert(ctypes.pointer(Outer()), NameMaker())
    new_outer = target(q)

    assert retag.field_tag(new_outer, "ID") == 'json:"id"'
    assert retag.field_tag(new_outer, "Child") == 'json:"child"'
    assert retag.field_tag(new_outer, "ID").get("json") == "id"

    new_inner = retag.fields(new_outer)[1].type._type_
    assert new_inner is not Inner
    assert retag.field_tag(new_inner, "Value") == 'json:"value"'
    assert retag.field_tag(new_inner, "Name") == 'json:"name"'


def test_synthesized_type_keeps_identity_details(converter):
    new_outer = converter.resolve(Outer, NameMaker()).type

    assert new_outer.__name__ == "Outer"
    assert new_outer.__qualname__ == Outer.__qualname__
    assert new_outer.__module__ == Outer.__module__
    assert issubclass(new_outer, ctypes.Structure)
    assert retag.source_of(new_outer) is Outer
    assert retag.source_of(Outer) is Outer


def test_layout_is_preserved(converter):
    new_outer = converter.resolve(Outer, NameMaker()).type

    assert ctypes.sizeof(new_outer) == ctypes.sizeof(Outer)
    before = [(f.name, f.offset, f.size) for f in retag.fields(Outer)]
    after = [(f.name, f.offset, f.size) for f in retag.fields(new_outer)]
    assert before == after


def test_unchanged_returns_same_pointer(converter):
    p = ctypes.pointer(Outer())

    assert converter.convert(p, KeepMaker()) is p

    res = converter.resolve(Outer, KeepMaker())
    assert res.type is Outer
    assert not res.changed
    assert not res.has_iface


def test_struct_without_fields_is_unchanged(converter):
    class Empty(ctypes.Structure):
        _fields_ = []

    p = ctypes.pointer(Empty())
    assert converter.convert(p, ConstMaker('json:"x"')) is p


# --- Cache behaviour ---

def test_convert_is_idempotent(converter):
    maker = NameMaker()
    q = converter.convert(ctypes.pointer(Outer()), maker)
    r = converter.convert(q, maker)

    assert r is q


def test_repeated_resolve_returns_same_type(converter, cache):
    first = converter.resolve(Outer, NameMaker())
    size = len(cache)
    second = converter.resolve(Outer, NameMaker())

    assert second.type is first.type
    assert len(cache) == size
    assert (Outer, NameMaker()) in cache


def test_different_makers_make_different_types(converter):
    as_json = converter.resolve(Outer, NameMaker("json")).type
    as_yaml = converter.resolve(Outer, NameMaker("yaml")).type

    assert as_json is not as_yaml
    assert retag.field_tag(as_yaml, "ID") == 'yaml:"id"'


def test_nested_results_are_cached(converter, cache):
    converter.resolve(Outer, NameMaker())

    assert (Inner, NameMaker()) in cache
    assert (ctypes.POINTER(Inner), NameMaker()) in cache
    assert (ctypes.c_int64, NameMaker()) in cache


# --- Nested composition ---

def test_unchanged_inner_type_is_reused(converter):
    new_outer = converter.resolve(Outer, OnlyTypeMaker("Outer", 'x:"y"')).type

    assert new_outer is not Outer
    child = retag.fields(new_outer)[1]
    assert child.type is ctypes.POINTER(Inner)
    assert child.tag == 'x:"y"'


def test_changed_inner_type_is_substituted(converter):
    new_outer = converter.resolve(Outer, OnlyTypeMaker("Inner", 'x:"y"')).type

    assert new_outer is not Outer
    child = retag.fields(new_outer)[1]
    new_inner = child.type._type_
    assert retag.source_of(new_inner) is Inner
    assert retag.field_tag(new_inner, "Value") == 'x:"y"'
    # the outer tags themselves are untouched
    assert child.tag == ""


def test_arrays_slices_and_maps_are_rebuilt(converter):
    new_bag = converter.resolve(Bag, NameMaker()).type
    by_name = {f.name: f for f in retag.fields(new_bag)}
    new_item = by_name["Items"].type._type_

    assert retag.source_of(new_item) is Item
    assert by_name["Items"].type._length_ == 3
    assert by_name["More"].type is retag.slice_of(new_item)
    assert by_name["Index"].type is retag.map_of(ctypes.c_int32, new_item)
    assert by_name["Count"].type is ctypes.c_int32
    assert ctypes.sizeof(new_bag) == ctypes.sizeof(Bag)


def test_array_elements_alias(converter):
    bag = Bag()
    q = converter.convert(ctypes.pointer(bag), NameMaker())

    bag.Items[1].Code = 5
    assert q.contents.Items[1].Code == 5
    q.contents.Items[2].Code = 6
    assert bag.Items[2].Code == 6


def test_union_is_converted(converter):
    new_number = converter.resolve(Number, NameMaker()).type

    assert issubclass(new_number, ctypes.Union)
    assert ctypes.sizeof(new_number) == ctypes.sizeof(Number)
    assert retag.field_tag(new_number, "F") == 'json:"f"'


def test_inherited_fields_are_flattened(converter):
    new_derived = converter.resolve(Derived, NameMaker()).type

    assert [f.name for f in retag.fields(new_derived)] == ["A", "B"]
    assert [f.offset for f in retag.fields(new_derived)] == [f.offset for f in retag.fields(Derived)]
    assert retag.field_tag(new_derived, "A") == 'json:"a"'


def test_inherited_fields_start_after_base_padding(converter):
    assert ctypes.sizeof(PadDerived) == 24
    new_derived = converter.resolve(PadDerived, NameMaker()).type

    assert ctypes.sizeof(new_derived) == ctypes.sizeof(PadDerived)
    assert [f.offset for f in retag.fields(new_derived)] == [0, 8, 16]
    assert retag.source_of(new_derived) is PadDerived
    new_base = new_derived.__mro__[1]
    assert retag.source_of(new_base) is PadBase
    assert new_base.__dict__["_tags_"] == {"A": 'json:"a"', "B": 'json:"b"'}
    assert new_derived.__dict__["_tags_"] == {"C": 'json:"c"'}

    obj = PadDerived(A=1, B=2, C=3)
    view = converter.convert_instance(obj, NameMaker())
    assert (view.A, view.B, view.C) == (1, 2, 3)
    view.C = 4
    assert obj.C == 4


def test_anonymous_fields_of_every_level_are_kept(converter):
    obj = AnonDerived()
    obj.I = 7
    obj.H = 5
    view = converter.convert_instance(obj, NameMaker())

    assert type(view) is not AnonDerived
    assert type(view).__dict__["_anonymous_"] == ("h",)
    assert type(view).__mro__[1].__dict__["_anonymous_"] == ("w",)
    assert view.I == 7
    assert view.H == 5
    view.Extra = 9
    assert obj.Extra == 9


def test_packed_structure_keeps_packing(converter):
    new_packed = converter.resolve(Packed, NameMaker()).type

    assert new_packed._pack_ == 1
    assert ctypes.sizeof(new_packed) == ctypes.sizeof(Packed)
    assert retag.fields(new_packed)[1].offset == 1


# --- Private fields ---

def test_private_fields_pass_through_when_nothing_changes(converter):
    p = ctypes.pointer(WithPrivate(Public=1, _secret=2))

    assert converter.convert(p, KeepMaker()) is p
    assert converter.convert(p, ConstMaker('json:"public"')) is p


def test_changing_a_struct_with_private_fields_fails(converter):
    with pytest.raises(retag.UnexportedFieldError) as exc:
        converter.convert(ctypes.pointer(WithPrivate()), ConstMaker('json:"other"'))

    assert "unexported fields" in str(exc.value)
    assert exc.value.ctype is WithPrivate


def test_nested_private_fields_stay_identical(converter):
    new_holder = converter.resolve(Holder, OnlyTypeMaker("Holder", 'json:"h"')).type
    guarded = retag.fields(new_holder)[0]

    assert guarded.type is WithPrivate
    secret = retag.fields(guarded.type)[1]
    assert secret.name == "_secret"
    assert secret.type is ctypes.c_int32
    assert secret.tag == 'internal:"1"'


def test_private_unsupported_field_is_not_walked(converter):
    p = ctypes.pointer(PrivateCallback())
    assert converter.convert(p, KeepMaker()) is p


# --- Opaque (py_object) fields ---

def test_strict_mode_rejects_py_object(converter):
    with pytest.raises(retag.UnsupportedTypeError) as exc:
        converter.convert(ctypes.pointer(WithObject()), NameMaker())

    assert "interface" in str(exc.value)
    assert exc.value.path == ("WithObject.Payload",)


def test_lenient_mode_keeps_py_object(converter):
    payload = {"answer": 42}
    obj = WithObject(Payload=payload, N=1)
    q = converter.convert_any(ctypes.pointer(obj), NameMaker())

    new_type = target(q)
    assert new_type is not WithObject
    assert retag.fields(new_type)[0].type is ctypes.py_object
    assert retag.field_tag(new_type, "N") == 'json:"n"'
    assert q.contents.Payload is payload

    res = converter.resolve(WithObject, NameMaker(), lenient=True)
    assert res.has_iface


def test_lenient_result_is_not_served_to_strict_caller(converter):
    converter.convert_any(ctypes.pointer(WithObject()), NameMaker())

    with pytest.raises(retag.UnsupportedTypeError):
        converter.convert(ctypes.pointer(WithObject()), NameMaker())

    # and the lenient caller still succeeds afterwards
    converter.convert_any(ctypes.pointer(WithObject()), NameMaker())


def test_py_object_behind_a_pointer_is_tracked(converter):
    res = converter.resolve(PointsToObject, NameMaker(), lenient=True)
    assert res.has_iface

    with pytest.raises(retag.UnsupportedTypeError) as exc:
        converter.resolve(PointsToObject, NameMaker())
    assert exc.value.path == ("PointsToObject.Ptr", "WithObject.Payload")


# --- Unsupported kinds ---

@pytest.mark.parametrize("struct_type, field_path", [
    (WithCallback, "WithCallback.OnEvent"),
    (WithRaw, "WithRaw.Raw"),
    (WithChan, "WithChan.Events"),
])
@pytest.mark.parametrize("lenient", [False, True])
def test_unsupported_kinds_fail_in_both_modes(converter, struct_type, field_path, lenient):
    with pytest.raises(retag.UnsupportedTypeError) as exc:
        converter.resolve(struct_type, NameMaker(), lenient=lenient)

    assert exc.value.path == (field_path,)
    assert str(exc.value).startswith("retag: unsupported type:")


# --- Preconditions ---

@pytest.mark.parametrize("value", [
    Outer(),
    ctypes.pointer(ctypes.c_int32(1)),
    42,
    None,
])
def test_convert_requires_pointer_to_structure(converter, value):
    with pytest.raises(retag.PreconditionError):
        converter.convert(value, NameMaker())


def test_precondition_error_is_a_type_error(converter):
    with pytest.raises(TypeError):
        converter.convert_any(Outer(), NameMaker())


def test_unhashable_maker_is_rejected(converter):
    with pytest.raises(retag.PreconditionError, match="not hashable"):
        converter.convert(ctypes.pointer(Outer()), UnhashableMaker())


def test_maker_without_make_tag_is_rejected(converter):
    with pytest.raises(retag.PreconditionError, match="make_tag"):
        converter.convert(ctypes.pointer(Outer()), object())


def test_maker_returning_non_string_is_rejected(converter):
    with pytest.raises(retag.PreconditionError, match="expected str"):
        converter.convert(ctypes.pointer(Outer()), BadMaker())


# --- Cycles ---

def test_cycle_is_treated_as_unchanged(converter):
    new_node = converter.resolve(Node, NameMaker()).type

    assert new_node is not Node
    by_name = {f.name: f for f in retag.fields(new_node)}
    assert by_name["Value"].tag == 'json:"value"'
    # the back reference still points at the original type
    assert by_name["Next"].type is ctypes.POINTER(Node)


def test_cycle_results_are_not_cached_half_built(converter, cache):
    node = converter.resolve(Node, NameMaker())

    assert cache.lookup(Node, NameMaker()) == node
    assert (ctypes.POINTER(Node), NameMaker()) not in cache

    head = retag.fields(converter.resolve(NodeHolder, NameMaker()).type)[0]
    assert head.type._type_ is node.type


def test_cycle_answers_do_not_depend_on_order(cache):
    first = retag.RetagConverter(cache=cache)
    holder_after = first.resolve(NodeHolder, NameMaker()).type

    other = retag.RetagConverter(cache=retag.TypeCache())
    other.resolve(Node, NameMaker())
    holder_before = other.resolve(NodeHolder, NameMaker()).type

    head_after = retag.fields(holder_after)[0].type._type_
    head_before = retag.fields(holder_before)[0].type._type_
    assert retag.source_of(head_after) is Node
    assert retag.source_of(head_before) is Node
    assert head_after is first.resolve(Node, NameMaker()).type


def test_cycle_can_be_rejected(cache):
    strict = retag.RetagConverter(cache=cache, on_cycle="error")

    with pytest.raises(retag.UnsupportedTypeError, match="cyclic"):
        strict.resolve(Node, NameMaker())


def test_unknown_cycle_mode_is_rejected():
    with pytest.raises(ValueError):
        retag.RetagConverter(on_cycle="sometimes")


def test_same_type_twice_is_not_a_cycle(converter):
    class Pair(ctypes.Structure):
        _fields_ = [("Left", Item), ("Right", Item)]

    new_pair = converter.resolve(Pair, NameMaker()).type
    left, right = retag.fields(new_pair)

    assert retag.source_of(left.type) is Item
    assert left.type is right.type


# --- Instances and the module-level surface ---

def test_convert_instance_views_same_buffer(converter):
    obj = Outer(ID=11)
    view = converter.convert_instance(obj, NameMaker())

    assert type(view) is converter.resolve(Outer, NameMaker()).type
    assert ctypes.addressof(view) == ctypes.addressof(obj)
    view.ID = 12
    assert obj.ID == 12


def test_convert_instance_returns_same_object_when_unchanged(converter):
    obj = Outer()
    assert converter.convert_instance(obj, KeepMaker()) is obj


def test_convert_instance_requires_structure(converter):
    with pytest.raises(retag.PreconditionError):
        converter.convert_instance(ctypes.c_int32(1), NameMaker())


def test_module_level_functions_share_default_converter():
    assert retag.default_converter() is retag.default_converter()

    q = retag.convert(ctypes.pointer(Item(Code=1)), NameMaker("module"))
    r = retag.convert_any(ctypes.pointer(Item(Code=2)), NameMaker("module"))

    assert target(q) is target(r)
    assert retag.field_tag(target(q), "Code") == 'module:"code"'
    assert retag.convert_instance(Item(), NameMaker("module")).__class__ is target(q)


# --- Reporting ---

def test_errors_are_reported_to_stream(reporting_converter):
    with pytest.raises(retag.UnexportedFieldError):
        reporting_converter.convert(ctypes.pointer(WithPrivate()), ConstMaker('json:"other"'))

    report = reporting_converter.errors.stream.getvalue()
    assert "error:" in report
    assert "WithPrivate" in report
    assert "= help:" in report
    assert "\033[" not in report


def test_debug_trace_goes_to_stderr(cache, capsys):
    verbose = retag.RetagConverter(cache=cache, debug=True)
    verbose.resolve(Node, NameMaker())

    err = capsys.readouterr().err
    assert "[DEBUG RETAG]" in err
    assert "cycle through" in err


# --- Concurrency ---

def test_concurrent_conversions_agree(converter):
    results = []
    errors = []

    def work():
        try:
            results.append(converter.resolve(Bag, NameMaker("threads")).type)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(results) == 8
    for new_bag in results:
        assert ctypes.sizeof(new_bag) == ctypes.sizeof(Bag)
        assert [f.tag for f in retag.fields(new_bag)] == [f.tag for f in retag.fields(results[0])]
    # once settled the cache answers with one type
    settled = converter.resolve(Bag, NameMaker("threads")).type
    assert converter.resolve(Bag, NameMaker("threads")).type is settled
