"""Reconcile extractor signatures against the authoritative symbol index.

A method signature has the form ``owner#name(type1,type2,...)``. The metrics
extractor and the symbol index spell parameter types differently on edge
cases: one side writes ``java.lang.String`` or ``pathlib.Path`` where the
other writes ``String`` or ``Path``, varargs show up as ``T...`` or ``T[]``,
and whitespace inside generic arguments varies. Matching is positional over
the parameter list and tolerant of qualified-vs-simple names.

Example:
    >>> match_signature("C#m(java.lang.String)", {"C#m(String)", "C#m(int)"})
    'C#m(String)'
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Optional

_SIGNATURE = re.compile(r"^\s*(?P<owner>[^#\s]+)#(?P<name>[^(\s]+)\s*\((?P<params>.*)\)\s*$")
_WHITESPACE = re.compile(r"\s+")

_OPEN_BRACKETS = "<["
_CLOSE_BRACKETS = ">]"


@dataclass(frozen=True)
class ParsedSignature:
    """Structured view of a signature string."""

    owner: str
    name: str
    params: tuple[str, ...]

    @property
    def prefix(self) -> str:
        return f"{self.owner}#{self.name}"

    def render(self) -> str:
        return f"{self.prefix}({','.join(self.params)})"


def parse_signature(signature: str) -> Optional[ParsedSignature]:
    """Split a signature into owner, method name and canonical parameter types.

    Returns None for strings that are not of the form ``owner#name(params)``.
    """
    m = _SIGNATURE.match(signature)
    if m is None:
        return None
    params = tuple(canonical_type(p) for p in split_params(m.group("params")))
    return ParsedSignature(owner=m.group("owner"), name=m.group("name"), params=params)


def split_params(blob: str) -> list[str]:
    """Split a parameter list on top-level commas.

    Commas nested in generic arguments (``Map<K,V>``, ``dict[str, int]``)
    do not split. An empty or blank list yields no parameters.
    """
    if not blob.strip():
        return []
    out: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(blob):
        if ch in _OPEN_BRACKETS:
            depth += 1
        elif ch in _CLOSE_BRACKETS:
            if depth > 0:
                depth -= 1
        elif ch == "," and depth == 0:
            out.append(blob[start:i].strip())
            start = i + 1
    out.append(blob[start:].strip())
    return out


def canonical_type(type_name: str) -> str:
    """Normalize a parameter type: drop whitespace, spell varargs as arrays."""
    t = _WHITESPACE.sub("", type_name)
    if t.endswith("..."):
        t = t[:-3] + "[]"
    return t


def erase_generics(type_name: str) -> str:
    """Remove generic arguments: ``java.util.List<String>`` -> ``java.util.List``.

    Python-style subscripts are generic arguments too (``dict[str,int]`` ->
    ``dict``), while empty array brackets (``String[]``) are kept.
    """
    out: list[str] = []
    depth = 0
    i = 0
    while i < len(type_name):
        ch = type_name[i]
        if ch == "[" and depth == 0 and type_name.startswith("[]", i):
            out.append("[]")
            i += 2
            continue
        if ch in _OPEN_BRACKETS:
            depth += 1
        elif ch in _CLOSE_BRACKETS:
            if depth > 0:
                depth -= 1
        elif depth == 0:
            out.append(ch)
        i += 1
    return "".join(out)


def simple_type_name(type_name: str) -> str:
    """Unqualified type name: last dot segment of the erased type, arrays kept."""
    erased = erase_generics(canonical_type(type_name))
    return erased.rsplit(".", 1)[-1]


def params_match(wanted: tuple[str, ...], candidate: tuple[str, ...]) -> bool:
    """Positional parameter comparison tolerating qualified vs simple names."""
    if len(wanted) != len(candidate):
        return False
    for a, b in zip(wanted, candidate):
        if a == b:
            continue
        if simple_type_name(a) != simple_type_name(b):
            return False
    return True


class SignatureMatcher:
    """Matches signatures against a fixed authoritative set.

    Candidates are grouped by ``owner#name`` once, so reconciling a whole
    extractor run costs a single pass over the authoritative set.
    """

    def __init__(self, authoritative: Iterable[str]) -> None:
        self._known = frozenset(authoritative)
        self._by_prefix: dict[str, list[tuple[str, ParsedSignature]]] = {}
        for candidate in sorted(self._known):
            parsed = parse_signature(candidate)
            if parsed is None:
                continue
            self._by_prefix.setdefault(parsed.prefix, []).append((candidate, parsed))

    def __contains__(self, signature: object) -> bool:
        return signature in self._known

    def __len__(self) -> int:
        return len(self._known)

    def match(self, signature: str) -> str:
        """Return the authoritative signature best matching ``signature``.

        Exact matches win. Otherwise the first candidate (in sorted order)
        sharing the ``owner#name`` prefix whose parameters match positionally
        is returned. Without a match the input comes back unchanged; that is a
        normal outcome and later surfaces as a plain cache miss.
        """
        if signature in self._known:
            return signature

        wanted = parse_signature(signature)
        if wanted is None:
            return signature

        for candidate, parsed in self._by_prefix.get(wanted.prefix, ()):
            if params_match(wanted.params, parsed.params):
                return candidate

        return signature

    def reconcile(self, scores: Mapping[str, float]) -> dict[str, float]:
        """Re-key extractor scores by their authoritative signatures.

        When two raw signatures resolve to the same authoritative one, the
        larger score is kept.
        """
        out: dict[str, float] = {}
        for raw, score in scores.items():
            resolved = self.match(raw)
            value = float(score)
            out[resolved] = max(out[resolved], value) if resolved in out else value
        return out


def match_signature(signature: str, authoritative: Iterable[str]) -> str:
    """One-shot form of :meth:`SignatureMatcher.match`."""
    return SignatureMatcher(authoritative).match(signature)


def reconcile_scores(
    scores: Mapping[str, float], authoritative: Iterable[str]
) -> dict[str, float]:
    """One-shot form of :meth:`SignatureMatcher.reconcile`."""
    return SignatureMatcher(authoritative).reconcile(scores)
