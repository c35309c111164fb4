"""
Smart playlist rule evaluation.

A rule document is the Navidrome .nsp shape: each condition object has a single
key naming the operator (``{"contains": {"genre": "jazz"}}``) or a nested
combinator (``{"all": [...]}`` / ``{"any": [...]}``). Documents are decoded once
by parse_rules into a typed tree (Leaf | AllOf | AnyOf) and evaluated in memory
against a list of library tracks:

1. ``all`` narrows the candidates sequentially (AND).
2. ``any`` evaluates each condition against the ``all`` result and unions the
   matches, deduplicated by track id (OR).
3. ``sort`` orders the result (``random`` or a comma-separated field list).
4. ``limit`` truncates.

An empty or absent ``all``/``any`` list does not filter anything.

Operators on metadata the library source cannot provide (date fields,
``inTheLast``/``notInTheLast``/``before``/``after``) always match. Each such field
is reported once per evaluation through EvaluationDiagnostics.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from recommendation_api.core.errors import RuleDocumentError
from recommendation_api.core.logging import get_logger
from recommendation_api.services.sources import LibrarySource, Track

logger = get_logger("services.smart_playlist")

# Upper bound on songs pulled from the library for one evaluation
LIBRARY_SCAN_LIMIT = 10000

SUPPORTED_OPERATORS = frozenset(
    {"is", "isNot", "gt", "lt", "contains", "notContains", "startsWith", "endsWith", "inTheRange"}
)
UNSUPPORTED_OPERATORS = frozenset({"inTheLast", "notInTheLast", "before", "after"})
DATE_FIELDS = frozenset(
    {"dateadded", "dateAdded", "created", "lastplayed", "lastPlayed", "dateloved", "dateLoved"}
)

FieldValue = Union[str, int, float, bool]

_FIELD_GETTERS: Dict[str, Callable[[Track], FieldValue]] = {
    "title": lambda t: t.title or "",
    "album": lambda t: t.album or "",
    "artist": lambda t: t.artist or "",
    "genre": lambda t: t.genre or "",
    "year": lambda t: t.year or 0,
    "rating": lambda t: t.rating or 0,
    "playcount": lambda t: t.play_count or 0,
    "playCount": lambda t: t.play_count or 0,
    "loved": lambda t: bool(t.loved),
    "duration": lambda t: t.duration or 0,
    "bitrate": lambda t: t.bitrate or 0,
    "tracknumber": lambda t: t.track_number or 0,
    "trackNumber": lambda t: t.track_number or 0,
}


# --------------------------
# Rule tree
# --------------------------

@dataclass(frozen=True)
class Leaf:
    operator: str
    field: str
    value: Any


@dataclass(frozen=True)
class AllOf:
    conditions: Tuple["Condition", ...] = ()


@dataclass(frozen=True)
class AnyOf:
    conditions: Tuple["Condition", ...] = ()


Condition = Union[Leaf, AllOf, AnyOf]


@dataclass(frozen=True)
class SmartPlaylistRules:
    """Decoded smart playlist document."""
    all_of: Optional[Tuple[Condition, ...]] = None
    any_of: Optional[Tuple[Condition, ...]] = None
    sort: Optional[str] = None
    order: str = "asc"
    limit: Optional[int] = None
    name: Optional[str] = None
    comment: Optional[str] = None


@dataclass
class EvaluationDiagnostics:
    """Collects notes about ignored conditions and unknown fields for a single evaluation."""
    notes: List[str] = field(default_factory=list)
    _seen: Set[str] = field(default_factory=set, repr=False)

    def note_once(self, key: str, message: str) -> None:
        if key in self._seen:
            return
        self._seen.add(key)
        self.notes.append(message)
        logger.warning(message, extra={"diagnostic": key})


# --------------------------
# Wire decoding / encoding
# --------------------------

def _parse_condition_list(raw: Any, path: str) -> Tuple[Condition, ...]:
    if not isinstance(raw, list):
        raise RuleDocumentError(f"{path} must be a list of conditions")
    return tuple(_parse_condition(item, f"{path}[{i}]") for i, item in enumerate(raw))


def _parse_condition(raw: Any, path: str) -> Condition:
    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise RuleDocumentError(f"{path} must be an object with exactly one operator key")
    operator, body = next(iter(raw.items()))

    if operator == "all":
        return AllOf(_parse_condition_list(body, f"{path}.all"))
    if operator == "any":
        return AnyOf(_parse_condition_list(body, f"{path}.any"))

    if not isinstance(body, Mapping) or len(body) != 1:
        raise RuleDocumentError(f"{path}.{operator} must map exactly one field to a value")
    field_name, value = next(iter(body.items()))

    if operator == "inTheRange":
        if (
            not isinstance(value, (list, tuple))
            or len(value) != 2
            or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
        ):
            raise RuleDocumentError(f"{path}.inTheRange value must be a [min, max] pair of numbers")
        value = (value[0], value[1])

    return Leaf(operator=operator, field=str(field_name), value=value)


# PUBLIC_INTERFACE
def parse_rules(document: Mapping[str, Any]) -> SmartPlaylistRules:
    """
    Decode a smart playlist document (Navidrome .nsp JSON shape) into SmartPlaylistRules.

    Raises:
    - RuleDocumentError if the document shape is invalid.
    """
    if not isinstance(document, Mapping):
        raise RuleDocumentError("Rule document must be an object")

    all_of = document.get("all")
    any_of = document.get("any")

    sort = document.get("sort")
    if sort is not None and not isinstance(sort, str):
        raise RuleDocumentError("sort must be a string")

    order = document.get("order") or "asc"
    if order not in ("asc", "desc"):
        raise RuleDocumentError("order must be 'asc' or 'desc'")

    limit = document.get("limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
        raise RuleDocumentError("limit must be a non-negative integer")

    return SmartPlaylistRules(
        all_of=_parse_condition_list(all_of, "all") if all_of is not None else None,
        any_of=_parse_condition_list(any_of, "any") if any_of is not None else None,
        sort=sort or None,
        order=order,
        limit=limit,
        name=document.get("name"),
        comment=document.get("comment"),
    )


def _condition_to_document(condition: Condition) -> Dict[str, Any]:
    if isinstance(condition, AllOf):
        return {"all": [_condition_to_document(c) for c in condition.conditions]}
    if isinstance(condition, AnyOf):
        return {"any": [_condition_to_document(c) for c in condition.conditions]}
    value = list(condition.value) if isinstance(condition.value, tuple) else condition.value
    return {condition.operator: {condition.field: value}}


# PUBLIC_INTERFACE
def to_document(rules: SmartPlaylistRules) -> Dict[str, Any]:
    """Encode SmartPlaylistRules back to the wire document shape."""
    doc: Dict[str, Any] = {}
    if rules.name is not None:
        doc["name"] = rules.name
    if rules.comment is not None:
        doc["comment"] = rules.comment
    if rules.all_of is not None:
        doc["all"] = [_condition_to_document(c) for c in rules.all_of]
    if rules.any_of is not None:
        doc["any"] = [_condition_to_document(c) for c in rules.any_of]
    if rules.sort:
        doc["sort"] = rules.sort
    if rules.order != "asc":
        doc["order"] = rules.order
    if rules.limit is not None:
        doc["limit"] = rules.limit
    return doc


# --------------------------
# Field access and comparison
# --------------------------

def _resolve_field(track: Track, name: str, diagnostics: EvaluationDiagnostics) -> FieldValue:
    getter = _FIELD_GETTERS.get(name)
    if getter is not None:
        return getter(track)
    if name in DATE_FIELDS:
        return ""
    diagnostics.note_once(f"field:{name}", f'Unknown field "{name}" resolves to an empty value')
    return ""


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if value is None:
        return ""
    return str(value)


def _strict_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    return type(a) is type(b) and a == b


def _is_match(track_value: FieldValue, value: Any) -> bool:
    # Text fields match on substring so multi-value genres ("Rock; Indie") still hit
    if isinstance(track_value, str) and isinstance(value, str):
        return value.lower() in track_value.lower()
    return _strict_equal(track_value, value)


def _leaf_matches(track: Track, leaf: Leaf, diagnostics: EvaluationDiagnostics) -> bool:
    operator = leaf.operator
    value = leaf.value

    if operator in UNSUPPORTED_OPERATORS or leaf.field in DATE_FIELDS:
        diagnostics.note_once(
            f"field:{leaf.field}",
            f'{operator} on "{leaf.field}" is not supported by the library source; condition ignored',
        )
        return True
    if operator not in SUPPORTED_OPERATORS:
        diagnostics.note_once(f"operator:{operator}", f"Unknown operator: {operator}; condition ignored")
        return True

    track_value = _resolve_field(track, leaf.field, diagnostics)

    if operator == "is":
        return _is_match(track_value, value)
    if operator == "isNot":
        return not _is_match(track_value, value)
    if operator == "gt":
        return _to_number(track_value) > _to_number(value)
    if operator == "lt":
        return _to_number(track_value) < _to_number(value)
    if operator == "inTheRange":
        low, high = value
        return low <= _to_number(track_value) <= high

    haystack = _to_text(track_value).lower()
    needle = _to_text(value).lower()
    if operator == "contains":
        return needle in haystack
    if operator == "notContains":
        return needle not in haystack
    if operator == "startsWith":
        return haystack.startswith(needle)
    return haystack.endswith(needle)


def _compare(a: FieldValue, b: FieldValue) -> int:
    if isinstance(a, str) and isinstance(b, str):
        a_key, b_key = a.casefold(), b.casefold()
        return (a_key > b_key) - (a_key < b_key)
    x, y = _to_number(a), _to_number(b)
    if x < y:
        return -1
    if x > y:
        return 1
    return 0


# --------------------------
# Evaluation
# --------------------------

def _apply_condition(tracks: List[Track], condition: Condition, diagnostics: EvaluationDiagnostics) -> List[Track]:
    if isinstance(condition, AllOf):
        return _apply_all(tracks, condition.conditions, diagnostics)
    if isinstance(condition, AnyOf):
        return _apply_any(tracks, condition.conditions, diagnostics)
    logger.debug(
        "Applying condition",
        extra={"operator": condition.operator, "field": condition.field, "value": condition.value},
    )
    return [t for t in tracks if _leaf_matches(t, condition, diagnostics)]


def _apply_all(tracks: List[Track], conditions: Sequence[Condition], diagnostics: EvaluationDiagnostics) -> List[Track]:
    result = tracks
    for condition in conditions:
        result = _apply_condition(result, condition, diagnostics)
    return result


def _apply_any(tracks: List[Track], conditions: Sequence[Condition], diagnostics: EvaluationDiagnostics) -> List[Track]:
    if not conditions:
        return tracks
    seen: Set[str] = set()
    union: List[Track] = []
    for condition in conditions:
        for track in _apply_condition(tracks, condition, diagnostics):
            if track.id not in seen:
                seen.add(track.id)
                union.append(track)
    return union


# PUBLIC_INTERFACE
def sort_tracks(
    tracks: Sequence[Track],
    sort: str,
    order: str = "asc",
    diagnostics: Optional[EvaluationDiagnostics] = None,
    rng: Optional[random.Random] = None,
) -> List[Track]:
    """
    Sort tracks by a smart playlist sort expression.

    ``random`` shuffles. Otherwise ``sort`` is a comma-separated field list such as
    ``"-year,-rating,title"``; a leading ``-`` sorts that field descending, other
    fields follow ``order``. Ties fall through to the next field.
    """
    diagnostics = diagnostics if diagnostics is not None else EvaluationDiagnostics()
    if sort.strip() == "random":
        shuffled = list(tracks)
        (rng or random).shuffle(shuffled)
        return shuffled

    keys: List[Tuple[str, int]] = []
    for raw in sort.split(","):
        term = raw.strip()
        if not term:
            continue
        descending = term.startswith("-") or order == "desc"
        name = term[1:] if term[0] in "+-" else term
        keys.append((name, -1 if descending else 1))

    def compare(a: Track, b: Track) -> int:
        for name, direction in keys:
            result = _compare(_resolve_field(a, name, diagnostics), _resolve_field(b, name, diagnostics))
            if result:
                return result * direction
        return 0

    return sorted(tracks, key=cmp_to_key(compare))


# PUBLIC_INTERFACE
def evaluate(
    rules: SmartPlaylistRules,
    candidates: Sequence[Track],
    diagnostics: Optional[EvaluationDiagnostics] = None,
    rng: Optional[random.Random] = None,
) -> List[Track]:
    """Filter, sort and limit candidate tracks according to rules."""
    diagnostics = diagnostics if diagnostics is not None else EvaluationDiagnostics()
    working = list(candidates)

    if rules.all_of:
        working = _apply_all(working, rules.all_of, diagnostics)
    if rules.any_of:
        working = _apply_any(working, rules.any_of, diagnostics)
    if rules.sort:
        working = sort_tracks(working, rules.sort, rules.order, diagnostics, rng)
    if rules.limit:
        working = working[: rules.limit]
    return working


# PUBLIC_INTERFACE
async def evaluate_smart_playlist(
    rules: SmartPlaylistRules,
    library: LibrarySource,
    diagnostics: Optional[EvaluationDiagnostics] = None,
    rng: Optional[random.Random] = None,
) -> List[Track]:
    """
    Evaluate rules against the whole library.

    Library retrieval errors are logged and re-raised; callers own the fallback policy.
    """
    try:
        songs = await library.list_songs(0, LIBRARY_SCAN_LIMIT)
    except Exception:
        logger.exception("Failed to load library for smart playlist evaluation")
        raise
    logger.info("Retrieved library songs for smart playlist", extra={"count": len(songs)})

    result = evaluate(rules, songs, diagnostics, rng)
    logger.info("Smart playlist evaluated", extra={"candidates": len(songs), "matched": len(result)})
    return result
