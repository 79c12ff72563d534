from dataclasses import dataclass

import retag


@dataclass(frozen=True)
class ConstMaker:
    """Gives every exported field the same tag."""

    tag: str

    def make_tag(self, struct_type, field_index):
        return self.tag


@dataclass(frozen=True)
class KeepMaker:
    """Returns the tag a field already has."""

    def make_tag(self, struct_type, field_index):
        return retag.fields(struct_type)[field_index].tag


@dataclass(frozen=True)
class NameMaker:
    """json tag from the field name, e.g. UserID -> json:"userid"."""

    key: str = "json"

    def make_tag(self, struct_type, field_index):
        name = retag.fields(struct_type)[field_index].name
        return f'{self.key}:"{name.lower()}"'


@dataclass(frozen=True)
class OnlyTypeMaker:
    """Renames fields of one type by name, leaves every other type untouched."""

    type_name: str
    tag: str

    def make_tag(self, struct_type, field_index):
        field = retag.fields(struct_type)[field_index]
        if struct_type.__name__ == self.type_name:
            return self.tag
        return field.tag


class UnhashableMaker:
    __hash__ = None

    def make_tag(self, struct_type, field_index):
        return ""


@dataclass(frozen=True)
class BadMaker:
    def make_tag(self, struct_type, field_index):
        return 42
