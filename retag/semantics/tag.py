import json
from typing import Iterable, Iterator, List, Tuple


class StructTag(str):
    """
    Field annotation in the conventional `key:"value" key2:"value2"` form.
    Values are double-quoted strings with JSON/Go escapes.

    Parsing stops at the first malformed pair. Lookups never see what follows
    it, and with_value()/without() keep that remainder verbatim at the end.
    """

    def _split(self) -> Tuple[List[Tuple[str, str]], str]:
        pairs = []
        tag = str(self)
        while tag:
            tag = tag.lstrip(" ")
            if not tag:
                break
            rest = tag

            i = 0
            while i < len(tag) and tag[i] > " " and tag[i] not in ':"\x7f':
                i += 1
            if i == 0 or i + 1 >= len(tag) or tag[i] != ":" or tag[i + 1] != '"':
                return pairs, rest
            name = tag[:i]
            tag = tag[i + 1:]

            # Scan the quoted value, skipping escaped characters
            i = 1
            while i < len(tag) and tag[i] != '"':
                if tag[i] == "\\":
                    i += 1
                i += 1
            if i >= len(tag):
                return pairs, rest
            quoted = tag[:i + 1]
            tag = tag[i + 1:]

            try:
                value = json.loads(quoted)
            except ValueError:
                return pairs, rest
            pairs.append((name, value))
        return pairs, ""

    def pairs(self) -> Iterator[Tuple[str, str]]:
        return iter(self._split()[0])

    def remainder(self) -> str:
        """The text from the first malformed pair on ("" for a well-formed tag)."""
        return self._split()[1]

    def lookup(self, key: str) -> Tuple[str, bool]:
        for name, value in self.pairs():
            if name == key:
                return value, True
        return "", False

    def get(self, key: str) -> str:
        return self.lookup(key)[0]

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]], remainder: str = "") -> "StructTag":
        parts = [f"{name}:{json.dumps(value, ensure_ascii=False)}" for name, value in pairs]
        if remainder:
            parts.append(remainder)
        return cls(" ".join(parts))

    def with_value(self, key: str, value: str) -> "StructTag":
        """Returns a copy with `key` set to `value` (appended when missing)."""
        pairs, rest = self._split()
        out = []
        replaced = False
        for name, old in pairs:
            if name == key:
                if replaced:
                    continue
                out.append((name, value))
                replaced = True
            else:
                out.append((name, old))
        if not replaced:
            out.append((key, value))
        return self.from_pairs(out, rest)

    def without(self, key: str) -> "StructTag":
        pairs, rest = self._split()
        return self.from_pairs(((name, value) for name, value in pairs if name != key), rest)
