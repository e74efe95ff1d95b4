"""
Matching key inference and record grouping.

Matching Keys:
Each record gets one key, picked from its field names (case-insensitive
substring match), first rule that finds a field wins:
1. 'gstin' or 'gst'      -> tax identifier
2. 'invoice' or 'inv'    -> invoice number
3. 'amount' or 'value'   -> amount
Within a rule the first matching field in the record's own column order
is used. When that field is empty or zero the next rule is tried; a
record where no rule yields a value has no key.

Groups:
Records sharing a key form a group. A group of two or more is a match;
members of a match that come from the same source are duplicates.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from gst_reconcile.records import Record

logger = logging.getLogger(__name__)

KEY_RULES = [
    ('gstin', 'gst'),
    ('invoice', 'inv'),
    ('amount', 'value'),
]


def format_key(value) -> str:
    """Render a field value as a matching key; whole floats drop the '.0'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _find_field(names, patterns) -> Optional[str]:
    for name in names:
        lowered = name.lower()
        if any(pattern in lowered for pattern in patterns):
            return name
    return None


def infer_matching_key(record: Record) -> Optional[str]:
    """
    Pick the matching key for a record.

    Args:
        record: Record to inspect

    Returns:
        str or None: Key string, or None when the record has no usable key
    """
    names = list(record.fields.keys())
    for patterns in KEY_RULES:
        name = _find_field(names, patterns)
        if name is None:
            continue
        value = record.fields[name]
        if value:
            return format_key(value)
    return None


@dataclass
class RecordGroup:
    matching_key: str
    records: List[Record] = field(default_factory=list)

    @property
    def sources(self) -> List[str]:
        """Distinct sources in first-seen order."""
        seen = []
        for record in self.records:
            if record.source not in seen:
                seen.append(record.source)
        return seen

    def to_dict(self):
        return {
            'matchingKey': self.matching_key,
            'records': [record.to_dict() for record in self.records],
            'sources': self.sources,
        }


@dataclass
class DuplicateSet:
    source: str
    matching_key: str
    records: List[Record] = field(default_factory=list)

    def to_dict(self):
        return {
            'source': self.source,
            'matchingKey': self.matching_key,
            'records': [record.to_dict() for record in self.records],
        }


@dataclass
class GroupingResult:
    """Groups found in one pool plus the counters derived from them."""
    groups: List[RecordGroup] = field(default_factory=list)
    matches: List[RecordGroup] = field(default_factory=list)
    duplicates: List[DuplicateSet] = field(default_factory=list)
    matched_records: int = 0
    unmatched_records: int = 0
    duplicate_records: int = 0
    keyless_records: int = 0


def find_duplicates(group: RecordGroup) -> List[DuplicateSet]:
    """Split a group by source and return the sources holding more than one record."""
    by_source = {}
    for record in group.records:
        by_source.setdefault(record.source, []).append(record)
    return [
        DuplicateSet(source=source, matching_key=group.matching_key, records=records)
        for source, records in by_source.items()
        if len(records) > 1
    ]


def group_records(records) -> GroupingResult:
    """
    Group records by matching key and classify the groups.

    Args:
        records (iterable of Record): Record pool for one run

    Returns:
        GroupingResult: Groups in first-seen key order, matches, duplicates
        and counters

    Notes:
        - matched_records counts every member of a group of two or more
        - unmatched_records counts single-member groups
        - keyless_records counts records with no inferable key; they are
          in neither of the two counters above
    """
    result = GroupingResult()
    groups = {}

    for record in records:
        key = infer_matching_key(record)
        if key is None:
            result.keyless_records += 1
            continue
        if key not in groups:
            groups[key] = RecordGroup(matching_key=key)
        groups[key].records.append(record)

    result.groups = list(groups.values())
    for group in result.groups:
        if len(group.records) > 1:
            result.matched_records += len(group.records)
            result.matches.append(group)
            for duplicate in find_duplicates(group):
                result.duplicate_records += len(duplicate.records)
                result.duplicates.append(duplicate)
        else:
            result.unmatched_records += 1

    logger.info(
        f"Grouped records into {len(result.groups)} keys: "
        f"{len(result.matches)} matches, {len(result.duplicates)} duplicate sets, "
        f"{result.keyless_records} without a key"
    )
    return result
