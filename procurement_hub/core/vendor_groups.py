"""
Per-vendor grouping of analysis records.

This is a pure projection: it has no stored identity and is recomputed on
every read. The same input always yields the same groups in the same order
(most recent interaction first, ties broken by group key).
"""

import math
import re
from typing import Any, Dict, Iterable, List, Optional

from procurement_hub.models.schemas import AnalysisRecord, VendorGroup

UNKNOWN_VENDOR = "Unknown Vendor"

_WHITESPACE = re.compile(r"\s+")


def resolve_vendor_name(record: AnalysisRecord) -> str:
    """
    Pick the display vendor name of a record.

    Preference order: the identified vendor in the analysis payload, the
    registered name used for credibility checks, the record's own vendor
    name, then a fixed placeholder.
    """
    data: Dict[str, Any] = record.data or {}
    identification = data.get("vendor_identification") or {}
    check_inputs = data.get("vendor_check_inputs") or {}

    for candidate in (
        identification.get("vendor_name"),
        check_inputs.get("registered_name"),
        record.vendor_name,
    ):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return UNKNOWN_VENDOR


def normalize_vendor_name(name: str) -> str:
    """Group key: whitespace-collapsed and casefolded."""
    return _WHITESPACE.sub(" ", name.strip()).casefold()


def vendor_key(record: AnalysisRecord) -> str:
    return normalize_vendor_name(resolve_vendor_name(record))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive scores."""
    return int(math.floor(value + 0.5))


def group_by_vendor(
    records: Iterable[AnalysisRecord],
    search: Optional[str] = None,
) -> List[VendorGroup]:
    """
    Group records by normalized vendor name.

    Args:
        records: Records from one partition
        search: Optional case-insensitive filter on vendor name or on the
            full name of any uploader in the group

    Returns:
        Groups ordered by most recent interaction first
    """
    buckets: Dict[str, List[AnalysisRecord]] = {}
    for record in records:
        buckets.setdefault(vendor_key(record), []).append(record)

    groups: List[VendorGroup] = []
    for key, members in buckets.items():
        ordered = sorted(members, key=lambda r: (-r.timestamp, r.id))
        latest = ordered[0]
        total = sum(r.score for r in ordered)
        groups.append(
            VendorGroup(
                key=key,
                name=resolve_vendor_name(latest),
                proposal_count=len(ordered),
                avg_score=round_half_up(total / len(ordered)),
                last_interaction=latest.timestamp,
                latest_data=latest.data,
                records=ordered,
            )
        )

    if search:
        needle = search.strip().lower()
        groups = [g for g in groups if _group_matches(g, needle)]

    groups.sort(key=lambda g: (-g.last_interaction, g.key))
    return groups


def _group_matches(group: VendorGroup, needle: str) -> bool:
    if needle in group.name.lower():
        return True
    for record in group.records:
        if record.uploader:
            full_name = f"{record.uploader.first_name} {record.uploader.last_name}".lower()
            if needle in full_name:
                return True
    return False
