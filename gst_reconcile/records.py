"""
Records and the record pool.

A record is one parsed row tagged with the source it came from and an id
of the form "{source}_{index}", where index is the record's position in
the pool across all sources. A pool belongs to a single reconciliation
run; build a new one per run.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Record:
    """A parsed row plus its source label and run-unique id."""
    source: str
    record_id: str
    fields: Mapping[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to the JSON shape: row fields, then source and recordId."""
        data = dict(self.fields)
        data['source'] = self.source
        data['recordId'] = self.record_id
        return data

    def __hash__(self):
        return hash(self.record_id)


class RecordPool:
    """Ordered collection of records from every source in one run."""

    def __init__(self):
        self._records: List[Record] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    @property
    def records(self) -> List[Record]:
        return list(self._records)

    def add_rows(self, source: str, rows: Iterable[Mapping[str, Any]]) -> List[Record]:
        """
        Tag rows from one source and append them to the pool.

        Args:
            source: Source label (e.g. 'gstr2a', 'purchaseRegister')
            rows: Parsed rows in file order

        Returns:
            The records created for this source, in row order
        """
        added = []
        for row in rows:
            record = Record(
                source=source,
                record_id=f"{source}_{len(self._records)}",
                fields=MappingProxyType(dict(row)),
            )
            self._records.append(record)
            added.append(record)
        logger.debug(f"Added {len(added)} records from {source} (pool size {len(self._records)})")
        return added

    @classmethod
    def from_sources(cls, data: Mapping[str, Iterable[Mapping[str, Any]]]) -> 'RecordPool':
        """Build a pool from a mapping of source label to rows, in mapping order."""
        pool = cls()
        for source, rows in data.items():
            pool.add_rows(source, rows)
        return pool
