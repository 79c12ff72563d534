from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .semantics.tag import StructTag
from .semantics.types import fields


@runtime_checkable
class TagMaker(Protocol):
    """
    Makes the tag for field `field_index` (an index into retag.fields(struct_type))
    of `struct_type`.

    The result must depend only on the maker's own (constant) parameters and the
    arguments, with no side effects: converted types are cached per
    (type, maker) and a maker that answers differently later is never asked again.
    Makers are cache keys, so they must be hashable and compare by value.
    """

    def make_tag(self, struct_type: type, field_index: int) -> str:
        ...


@dataclass(frozen=True)
class RenameKeyMaker:
    """Copies the value of tag key `source` into key `target` (e.g. json -> yaml)."""

    source: str
    target: str

    def make_tag(self, struct_type: type, field_index: int) -> str:
        tag = fields(struct_type)[field_index].tag
        value, ok = tag.lookup(self.source)
        if not ok:
            return tag
        return tag.with_value(self.target, value)


@dataclass(frozen=True)
class ViewMaker:
    """
    Hides fields from a view: a field whose `view_key` tag does not list `view`
    (comma separated) gets `key:"-"`. Fields without a `view_key` tag are shown.
    """

    view: str
    key: str = "json"
    view_key: str = "view"

    def make_tag(self, struct_type: type, field_index: int) -> str:
        tag = fields(struct_type)[field_index].tag
        views, ok = tag.lookup(self.view_key)
        if not ok or self.view in (v.strip() for v in views.split(",")):
            return tag
        return tag.with_value(self.key, "-")


__all__ = [
    "StructTag",
    "TagMaker",
    "RenameKeyMaker",
    "ViewMaker",
]
