"""
Task filter predicates.

A filter is a conjunction of groups; a group is a disjunction of terms.
Users type filters as text, e.g. ``"genitiv, dativ; level=a1"``: groups are
separated by ``;`` and terms by ``,``. A bare term matches when any tag value
contains it, ``name=value`` restricts the match to one tag. Matching is
case-insensitive. ``name==value`` requires the whole tag value to match.

A backslash makes the next character literal, so ``level==a1\\, a2`` is one
term. The canonical text form escapes every separator, so stored filters
always parse back to the same predicate.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from wordsbot.errors import InvalidFilter

from .types import FilterInfo

RESET_TOKENS = frozenset({"", "-"})
SPECIAL_CHARS = frozenset("\\,;=")

# (character, escaped)
Char = tuple[str, bool]


def escape_text(text: str) -> str:
    """Backslash-escape separators and edge whitespace."""
    chars = [f"\\{c}" if c in SPECIAL_CHARS else c for c in text]
    lead = len(text) - len(text.lstrip())
    trail = len(text) - len(text.rstrip()) if text.strip() else 0
    for i in [*range(lead), *range(len(text) - trail, len(text))]:
        chars[i] = f"\\{text[i]}"
    return "".join(chars)


def _tokenize(text: str) -> list[Char]:
    chars: list[Char] = []
    it = iter(text)
    for c in it:
        if c == "\\":
            # A trailing backslash stands for itself
            chars.append((next(it, "\\"), True))
        else:
            chars.append((c, False))
    return chars


def _split(chars: list[Char], separator: str) -> list[list[Char]]:
    parts: list[list[Char]] = [[]]
    for c, escaped in chars:
        if c == separator and not escaped:
            parts.append([])
        else:
            parts[-1].append((c, escaped))
    return parts


def _strip(chars: list[Char]) -> list[Char]:
    start, end = 0, len(chars)
    while start < end and not chars[start][1] and chars[start][0].isspace():
        start += 1
    while end > start and not chars[end - 1][1] and chars[end - 1][0].isspace():
        end -= 1
    return chars[start:end]


def _text(chars: list[Char]) -> str:
    return "".join(c for c, _ in chars).lower()


def _parse_term(chars: list[Char]) -> FilterTerm | None:
    chars = _strip(chars)
    if not chars:
        return None
    eq = next((i for i, (c, escaped) in enumerate(chars) if c == "=" and not escaped), None)
    if eq is None:
        return FilterTerm(value=_text(chars))

    name, value = _strip(chars[:eq]), _strip(chars[eq + 1 :])
    exact = bool(value) and value[0] == ("=", False)
    if exact:
        value = _strip(value[1:])
    if not name or not value:
        return None
    return FilterTerm(value=_text(value), name=_text(name), exact=exact)


@dataclass(frozen=True)
class FilterTerm:
    value: str
    name: str | None = None
    exact: bool = False

    def matches(self, tags: Mapping[str, str]) -> bool:
        if self.name is not None:
            candidates = [v for k, v in tags.items() if k.lower() == self.name]
        else:
            candidates = list(tags.values())
        for candidate in candidates:
            candidate = str(candidate).lower()
            if self.exact and candidate == self.value:
                return True
            if not self.exact and self.value in candidate:
                return True
        return False

    def __str__(self) -> str:
        if self.name is not None:
            return f"{escape_text(self.name)}{'==' if self.exact else '='}{escape_text(self.value)}"
        return escape_text(self.value)


@dataclass(frozen=True)
class FilterGroup:
    terms: tuple[FilterTerm, ...]

    def matches(self, tags: Mapping[str, str]) -> bool:
        return any(term.matches(tags) for term in self.terms)

    def __str__(self) -> str:
        return ", ".join(str(term) for term in self.terms)


@dataclass(frozen=True)
class TaskFilter:
    groups: tuple[FilterGroup, ...]

    @classmethod
    def parse(cls, text: str | None) -> TaskFilter | None:
        """Parse user filter text. Returns None for "no filter"."""
        if text is None or text.strip() in RESET_TOKENS:
            return None

        groups = []
        for raw_group in _split(_tokenize(text), ";"):
            terms = []
            for raw_term in _split(raw_group, ","):
                term = _parse_term(raw_term)
                if term is not None:
                    terms.append(term)
            if terms:
                groups.append(FilterGroup(tuple(terms)))

        if not groups:
            raise InvalidFilter(text)
        return cls(tuple(groups))

    @classmethod
    def from_tags(cls, tags: Mapping[str, str]) -> TaskFilter | None:
        """
        Exact per-tag conjunction, e.g. ``{"topic": "colors"}``.

        Raises:
            InvalidFilter: a blank tag name or value, which no text form can hold
        """
        groups = []
        for name, value in sorted(tags.items()):
            name, value = str(name).lower(), str(value).lower()
            if not name.strip() or not value.strip():
                raise InvalidFilter(f"{name}=={value}")
            groups.append(FilterGroup((FilterTerm(value=value, name=name, exact=True),)))
        return cls(tuple(groups)) if groups else None

    def matches(self, tags: Mapping[str, str]) -> bool:
        return all(group.matches(tags) for group in self.groups)

    def to_text(self) -> str:
        """Canonical text form, stored in user_state.filter; parses back to an equal filter."""
        return "; ".join(str(group) for group in self.groups)

    __str__ = to_text


def match_task(tags: Mapping[str, str], task_filter: TaskFilter | None) -> bool:
    """No filter matches everything."""
    if task_filter is None:
        return True
    return task_filter.matches(tags)


def collect_filter_info(tag_sets: Iterable[Mapping[str, str]]) -> list[FilterInfo]:
    """Distinct values per tag name, deduplicated case-insensitively and sorted."""
    by_name: dict[str, dict[str, str]] = {}
    for tags in tag_sets:
        for name, value in tags.items():
            value = str(value)
            by_name.setdefault(name, {}).setdefault(value.lower(), value)

    return [
        FilterInfo(name=name, possible_values=sorted(values.values()))
        for name, values in sorted(by_name.items())
    ]
