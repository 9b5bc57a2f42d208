"""
Row Filter & Deduplicator

Drops empty rows, rows without a company number, rows in an excluded status
and repeat company numbers. First occurrence wins and input order is kept.
"""

import logging
from typing import Dict, Iterable, List, Set, Tuple

from .import_types import DropCounts
from .schema_tables import EXCLUDED_STATUSES, PRIMARY_KEY_COLUMN, STATUS_COLUMN

logger = logging.getLogger(__name__)


def filter_rows(
    rows: Iterable[Dict[str, str]],
    headers: List[str],
) -> Tuple[List[Dict[str, str]], DropCounts]:
    """Apply the row rules to cleaned records. Returns (kept rows, drop counts)."""
    has_key = PRIMARY_KEY_COLUMN in headers
    has_status = STATUS_COLUMN in headers

    if not has_key:
        logger.warning(f"`{PRIMARY_KEY_COLUMN}` column not found in cleaned headers. De-duplication will be skipped.")
    if not has_status:
        logger.warning(f"`{STATUS_COLUMN}` column not found in cleaned headers. Filtering by status will be skipped.")

    kept: List[Dict[str, str]] = []
    dropped = DropCounts()
    seen: Set[str] = set()

    for row in rows:
        if not any(row.values()):
            dropped.empty += 1
            continue

        if has_status and row.get(STATUS_COLUMN, "").lower() in EXCLUDED_STATUSES:
            dropped.liquidation += 1
            continue

        if has_key:
            key = row.get(PRIMARY_KEY_COLUMN, "")
            if not key:
                dropped.missing_key += 1
                continue
            # Excluded rows never reach this point, so they cannot claim a key
            if key in seen:
                dropped.duplicate += 1
                continue
            seen.add(key)

        kept.append(row)

    logger.info(
        f"Row filter kept {len(kept)} rows "
        f"(empty={dropped.empty}, missing_key={dropped.missing_key}, "
        f"liquidation={dropped.liquidation}, duplicate={dropped.duplicate})"
    )
    return kept, dropped
