"""
Keyword-based mood translator.

Turns a free-text mood ("chill evening vibes") into a smart playlist query by
matching known keywords. Queries are written in the flat translator shape
({"field", "operator", "value"}) and converted to SmartPlaylistRules by
query_to_rules, which also maps the ``between`` operator to ``inTheRange``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from recommendation_api.core.errors import RuleDocumentError
from recommendation_api.core.logging import get_logger
from recommendation_api.services.smart_playlist import SmartPlaylistRules, parse_rules

logger = get_logger("services.mood_translator")

DEFAULT_QUERY_LIMIT = 25

QUERY_FIELDS = frozenset({"genre", "year", "rating", "bpm", "artist", "album", "title", "playCount", "loved"})
QUERY_OPERATORS = {
    "contains": "contains",
    "is": "is",
    "isNot": "isNot",
    "gt": "gt",
    "lt": "lt",
    "between": "inTheRange",
    "startsWith": "startsWith",
    "endsWith": "endsWith",
}


def _genres(*names: str) -> List[Dict[str, Any]]:
    return [{"field": "genre", "operator": "contains", "value": name} for name in names]


def _years(start: int, end: int) -> List[Dict[str, Any]]:
    return [{"field": "year", "operator": "between", "value": [start, end]}]


# (keywords, keywords that veto the match, query); first match wins
_KEYWORD_QUERIES: Sequence[Tuple[Tuple[str, ...], Tuple[str, ...], Dict[str, Any]]] = (
    # Energy and mood
    (("chill", "relax", "calm", "mellow"), (),
     {"any": _genres("ambient", "chill", "acoustic", "jazz"), "limit": 25}),
    (("party", "dance", "club", "rave"), (),
     {"any": _genres("dance", "electronic", "edm", "techno", "house", "acid", "trance", "hardstyle", "hardcore",
                     "drum and bass", "dnb", "dubstep", "riddim", "breakbeat", "jungle", "gabber"),
      "limit": 40}),
    (("workout", "gym", "exercise", "energy"), (),
     {"any": _genres("rock", "metal", "electronic", "hip-hop"), "limit": 40}),
    (("focus", "study", "work", "concentrate"), (),
     {"any": _genres("classical", "ambient", "instrumental", "lo-fi"), "limit": 30}),
    (("sad", "melancholy", "blue"), (),
     {"any": _genres("indie", "folk", "acoustic", "singer-songwriter"), "limit": 25}),
    (("happy", "upbeat", "joy", "cheerful"), (),
     {"any": _genres("pop", "indie", "funk", "soul"), "limit": 30}),
    (("80s", "eighties"), (), {"all": _years(1980, 1989), "limit": 30}),
    (("90s", "nineties"), (), {"all": _years(1990, 1999), "limit": 30}),
    (("2000s", "00s"), (), {"all": _years(2000, 2009), "limit": 30}),
    (("favorite", "best", "loved"), (),
     {"any": [{"field": "loved", "operator": "is", "value": True},
              {"field": "playCount", "operator": "gt", "value": 5}],
      "limit": 50, "sort": "playCount"}),
    (("never played", "unplayed", "discover"), (),
     {"all": [{"field": "playCount", "operator": "is", "value": 0}], "limit": 30}),
    # Genres
    (("rock",), ("workout",), {"any": _genres("rock", "alternative", "grunge", "punk"), "limit": 30}),
    (("metal", "heavy"), (), {"any": _genres("metal", "heavy", "thrash", "death", "black metal"), "limit": 30}),
    (("electronic", "edm", "techno", "house"), (),
     {"any": _genres("electronic", "techno", "house", "trance", "edm", "synth"), "limit": 35}),
    (("hip hop", "hip-hop", "rap", "hiphop"), (),
     {"any": _genres("hip-hop", "hip hop", "rap", "r&b", "trap"), "limit": 30}),
    (("jazz",), ("chill",), {"any": _genres("jazz", "swing", "bebop", "fusion", "smooth jazz"), "limit": 30}),
    (("classical", "orchestra", "symphony"), (),
     {"any": _genres("classical", "orchestra", "symphony", "chamber", "baroque", "romantic"), "limit": 30}),
    (("country", "folk", "bluegrass", "americana"), (),
     {"any": _genres("country", "folk", "bluegrass", "americana", "western"), "limit": 30}),
    (("blues",), (), {"any": _genres("blues", "soul", "rhythm"), "limit": 30}),
    (("r&b", "rnb", "soul", "motown"), (),
     {"any": _genres("r&b", "soul", "motown", "funk", "neo-soul"), "limit": 30}),
    (("reggae", "ska", "dub"), (), {"any": _genres("reggae", "ska", "dub", "dancehall"), "limit": 30}),
    (("indie",), ("sad",), {"any": _genres("indie", "alternative", "lo-fi", "shoegaze"), "limit": 30}),
    (("pop",), ("party",), {"any": _genres("pop", "synth-pop", "dance-pop", "electropop"), "limit": 35}),
    (("punk",), (), {"any": _genres("punk", "hardcore", "post-punk", "emo"), "limit": 30}),
    # Activities and settings
    (("romantic", "love", "romance", "date"), (),
     {"any": _genres("soul", "r&b", "jazz", "ballad", "romantic"), "limit": 25}),
    (("sleep", "night", "bedtime", "lullaby"), (),
     {"any": _genres("ambient", "classical", "new age", "meditation"), "limit": 20}),
    (("morning", "wake up", "sunrise", "breakfast"), (),
     {"any": _genres("acoustic", "folk", "indie", "pop"), "limit": 25}),
    (("driving", "road trip", "car", "highway"), (),
     {"any": _genres("rock", "classic rock", "indie", "pop", "country"), "limit": 40}),
    (("cooking", "dinner", "kitchen", "food"), (),
     {"any": _genres("jazz", "bossa nova", "soul", "lounge"), "limit": 25}),
    (("angry", "intense", "aggressive", "rage"), (),
     {"any": _genres("metal", "hardcore", "punk", "industrial"), "limit": 30}),
    (("summer", "beach", "tropical", "vacation"), (),
     {"any": _genres("reggae", "pop", "tropical", "latin", "dance"), "limit": 35}),
    (("rainy", "cozy", "rain", "coffee"), (),
     {"any": _genres("acoustic", "folk", "indie", "jazz", "lo-fi"), "limit": 25}),
    # More decades
    (("60s", "sixties"), (), {"all": _years(1960, 1969), "limit": 30}),
    (("70s", "seventies"), (), {"all": _years(1970, 1979), "limit": 30}),
    (("2010s", "10s", "tens"), (), {"all": _years(2010, 2019), "limit": 30}),
    (("2020s", "20s", "recent", "new music"), (), {"all": _years(2020, 2029), "limit": 30}),
    (("classic", "vintage", "oldies", "retro"), (), {"all": _years(1950, 1989), "limit": 40}),
    # World music
    (("latin", "spanish", "salsa", "latino"), (),
     {"any": _genres("latin", "salsa", "reggaeton", "bachata", "spanish"), "limit": 30}),
    (("french", "paris", "chanson"), (),
     {"any": _genres("french", "chanson") + [{"field": "artist", "operator": "contains", "value": "french"}],
      "limit": 25}),
    (("african", "afrobeat", "afro"), (), {"any": _genres("african", "afrobeat", "world"), "limit": 25}),
    (("japanese", "j-pop", "anime"), (), {"any": _genres("japanese", "j-pop", "anime", "jpop"), "limit": 25}),
    (("korean", "k-pop", "kpop"), (), {"any": _genres("korean", "k-pop", "kpop"), "limit": 25}),
    # Instrumentation
    (("instrumental", "no vocals", "no singing"), (),
     {"any": _genres("instrumental", "classical", "soundtrack", "post-rock"), "limit": 30}),
    (("piano", "keyboard"), (), {"any": _genres("piano", "classical", "instrumental"), "limit": 25}),
    (("guitar", "acoustic guitar"), (), {"any": _genres("acoustic", "folk", "guitar", "flamenco"), "limit": 25}),
    (("soundtrack", "movie", "film", "score", "cinematic"), (),
     {"any": _genres("soundtrack", "score", "film", "cinematic", "orchestral"), "limit": 30}),
    (("video game", "gaming", "game music", "chiptune"), (),
     {"any": _genres("game", "chiptune", "video game", "8-bit", "electronic"), "limit": 30}),
)


def _condition_to_document(condition: Mapping[str, Any]) -> Dict[str, Any]:
    field = condition.get("field")
    operator = condition.get("operator")
    if field not in QUERY_FIELDS:
        raise RuleDocumentError(f"Unsupported query field: {field!r}")
    if operator not in QUERY_OPERATORS:
        raise RuleDocumentError(f"Unsupported query operator: {operator!r}")
    if "value" not in condition:
        raise RuleDocumentError(f"Query condition on {field!r} has no value")
    return {QUERY_OPERATORS[operator]: {field: condition["value"]}}


# PUBLIC_INTERFACE
def query_to_rules(query: Mapping[str, Any], default_limit: int = DEFAULT_QUERY_LIMIT) -> SmartPlaylistRules:
    """
    Convert a flat translator query into SmartPlaylistRules.

    Missing ``limit`` defaults to default_limit and missing ``sort`` to ``random``.
    """
    document: Dict[str, Any] = {}
    for key in ("all", "any"):
        conditions = query.get(key)
        if conditions is None:
            continue
        if not isinstance(conditions, list):
            raise RuleDocumentError(f"{key} must be a list of conditions")
        document[key] = [_condition_to_document(c) for c in conditions]
    document["limit"] = query.get("limit") or default_limit
    document["sort"] = query.get("sort") or "random"
    return parse_rules(document)


class KeywordMoodTranslator:
    """Mood translator backed by a fixed keyword table."""

    def keyword_query(self, text: str) -> Optional[Dict[str, Any]]:
        mood = text.lower()
        for keywords, vetoes, query in _KEYWORD_QUERIES:
            if any(k in mood for k in keywords) and not any(v in mood for v in vetoes):
                return query
        return None

    async def translate_mood_to_query(self, text: str) -> SmartPlaylistRules:
        query = self.keyword_query(text)
        if query is None:
            logger.info("No mood keyword matched; using unfiltered random query", extra={"mood": text})
            query = {"all": [], "limit": DEFAULT_QUERY_LIMIT, "sort": "random"}
        return query_to_rules(query)
