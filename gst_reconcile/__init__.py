"""
GST Reconcile - A tool for reconciling GST source files against each other.

This package provides functionality to:
- Read source files (CSV, Excel, ZIP) for GSTR-2A, GSTR-2B, IMS, purchase
  register and other labelled sources
- Tag parsed rows as records from a named source
- Group records sharing a GSTIN, invoice number or amount across sources
- Flag same-source duplicates and summarise the run in a report

The report includes:
- summary: total, matched, unmatched, duplicate and keyless record counts
- matches: record groups found in more than one record
- duplicates: same-source records sharing a matching key
- analysis: completeness, duplicate rate, reconciliation rate and
  recommendations
"""

from .parser import (
    parse_csv,
    coerce_value,
    import_source,
)
from .records import Record, RecordPool
from .matching import infer_matching_key, group_records
from .reconcile import (
    reconcile_records,
    reconcile_sources,
    run_reconciliation,
    process_files,
    generate_reconciliation_report,
    save_report_json,
)

__all__ = [
    'parse_csv',
    'coerce_value',
    'import_source',
    'Record',
    'RecordPool',
    'infer_matching_key',
    'group_records',
    'reconcile_records',
    'reconcile_sources',
    'run_reconciliation',
    'process_files',
    'generate_reconciliation_report',
    'save_report_json',
]
