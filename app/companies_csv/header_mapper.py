"""Map Companies House column names onto the canonical snake_case schema."""

import re
from collections import defaultdict
from typing import Dict, List, Tuple

from .import_types import HeaderCollisionError
from .schema_tables import HEADER_MAPPING, PLACEHOLDER_HEADERS, UNNAMED_HEADER_PREFIX

_NON_WORD = re.compile(r"\W+")


def is_junk_header(header: str) -> bool:
    """Empty, placeholder and spreadsheet 'Unnamed: N' headers carry no data."""
    stripped = (header or "").strip()
    return not stripped or stripped in PLACEHOLDER_HEADERS or stripped.startswith(UNNAMED_HEADER_PREFIX)


def fallback_column_name(header: str) -> str:
    """Lowercase and collapse every run of non-alphanumerics into one underscore."""
    return _NON_WORD.sub("_", header.strip().lower())


def canonical_name(header: str) -> str:
    stripped = header.strip()
    return HEADER_MAPPING.get(stripped) or fallback_column_name(stripped)


def map_headers(headers: List[str]) -> List[Tuple[str, str]]:
    """
    Resolve input headers to canonical names.

    Returns (input header, canonical name) pairs in input order with junk
    headers removed. Raises HeaderCollisionError when two input headers
    resolve to the same canonical name.
    """
    pairs = [(h, canonical_name(h)) for h in headers if not is_junk_header(h)]

    sources: Dict[str, List[str]] = defaultdict(list)
    for original, target in pairs:
        sources[target].append(original)
    collisions = {target: names for target, names in sources.items() if len(names) > 1}
    if collisions:
        raise HeaderCollisionError(collisions)

    return pairs
