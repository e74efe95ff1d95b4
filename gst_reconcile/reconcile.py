"""
GST Reconciliation System

Pulls records from the uploaded reconciliation sources (IMS, GSTR-2A,
GSTR-2B, purchase register, Logitax purchase, or any other labelled
file), groups records that share a matching key across sources and
produces a match report.

Run Flow:
1. Each source is parsed into rows (see gst_reconcile.parser). A source
   that fails is recorded in the file info and skipped.
2. Rows are tagged into records in a fresh pool, in source order.
3. Records are grouped by matching key (see gst_reconcile.matching).
4. Counters, rates and recommendations are summarised into the report.

Report Format:
- summary: totalRecords, matchedRecords, unmatchedRecords,
  duplicateRecords, keylessRecords
- matches: groups of two or more records sharing a key
- duplicates: same-source records inside a match
- analysis: dataQuality (completeness, duplicateRate), reconciliationRate,
  recommendations. Left out when there are no records.

Counting:
matchedRecords counts members of multi-record groups, unmatchedRecords
counts single-record groups and keylessRecords counts records with no
matching key. Completeness is (total - unmatched) / total, so keyless
records count towards completeness.
"""

import argparse
import csv
import json
import logging
import pathlib
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import pandas as pd

from gst_reconcile.matching import DuplicateSet, RecordGroup, group_records
from gst_reconcile.parser import decode_text, import_source, parse_csv
from gst_reconcile.records import RecordPool
from gst_reconcile.utils import resolve_output_directory, setup_logging

logger = logging.getLogger(__name__)

# Source labels used by the upload form; any other label is accepted too
SOURCE_TYPES = ['ims', 'gstr2a', 'gstr2b', 'purchaseRegister', 'logitaxPurchase']

RECONCILIATION_TYPES = ['daily', 'weekly', 'monthly']

# Leading columns of the tabular match export
export_columns = ['matchingKey', 'source', 'recordId', 'duplicate']


@dataclass
class ReconciliationConfig:
    """Run settings echoed back in the result."""
    reconciliation_type: str = 'daily'
    selected_user: str = ''
    date_range: Dict[str, str] = field(default_factory=lambda: {'start': '', 'end': ''})
    files_processed: int = 0
    total_records: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'reconciliationType': self.reconciliation_type,
            'selectedUser': self.selected_user,
            'dateRange': dict(self.date_range),
            'filesProcessed': self.files_processed,
            'totalRecords': self.total_records,
        }


@dataclass
class SourceInfo:
    """Outcome of reading one source."""
    type: str
    name: str
    size: int = 0
    records_extracted: int = 0
    status: str = ''
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'name': self.name,
            'size': self.size,
            'recordsExtracted': self.records_extracted,
            'status': self.status,
            'error': self.error,
        }


@dataclass
class ReconciliationReport:
    total_records: int = 0
    matched_records: int = 0
    unmatched_records: int = 0
    duplicate_records: int = 0
    keyless_records: int = 0
    matches: List[RecordGroup] = field(default_factory=list)
    duplicates: List[DuplicateSet] = field(default_factory=list)
    analysis: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'summary': {
                'totalRecords': self.total_records,
                'matchedRecords': self.matched_records,
                'unmatchedRecords': self.unmatched_records,
                'duplicateRecords': self.duplicate_records,
                'keylessRecords': self.keyless_records,
            },
            'matches': [group.to_dict() for group in self.matches],
            'duplicates': [duplicate.to_dict() for duplicate in self.duplicates],
        }
        if self.analysis is not None:
            data['analysis'] = self.analysis
        return data


@dataclass
class ReconciliationResult:
    """Everything a run hands back to the caller, ready for JSON download."""
    success: bool
    config: ReconciliationConfig
    file_info: List[SourceInfo] = field(default_factory=list)
    report: Optional[ReconciliationReport] = None
    error: Optional[str] = None
    processed_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': self.success,
            'processedAt': self.processed_at,
            'config': self.config.to_dict(),
            'processedData': {'fileInfo': [info.to_dict() for info in self.file_info]},
        }
        if self.report is not None:
            data['reconciliationReport'] = self.report.to_dict()
        if self.error:
            data['error'] = self.error
        return data


def generate_recommendations(matched_records, unmatched_records, duplicate_records, match_count):
    """
    Build recommendation messages for a report.

    Args:
        matched_records (int): Records in multi-record groups
        unmatched_records (int): Single-record groups
        duplicate_records (int): Same-source records inside matches
        match_count (int): Number of matched groups

    Returns:
        list: Recommendation strings, in fixed order
    """
    recommendations = []

    if duplicate_records > 0:
        recommendations.append(
            f"Found {duplicate_records} duplicate records - consider data deduplication"
        )

    if unmatched_records > matched_records:
        recommendations.append(
            "High number of unmatched records - review data formats and matching criteria"
        )

    if match_count > 0:
        recommendations.append(
            f"Successfully matched {match_count} record groups across different sources"
        )

    return recommendations


def _percentage(count, total):
    """Percentage to one decimal place, ties rounded up."""
    value = Decimal(count / total * 100)
    return float(value.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def build_analysis(report):
    """Compute rates and recommendations; None when the report has no records."""
    total = report.total_records
    if total == 0:
        return None

    return {
        'dataQuality': {
            'completeness': _percentage(total - report.unmatched_records, total),
            'duplicateRate': _percentage(report.duplicate_records, total),
        },
        'reconciliationRate': _percentage(report.matched_records, total),
        'recommendations': generate_recommendations(
            report.matched_records,
            report.unmatched_records,
            report.duplicate_records,
            len(report.matches),
        ),
    }


def reconcile_records(pool):
    """
    Group a record pool and build the report.

    Args:
        pool (RecordPool): Records from every source in this run

    Returns:
        ReconciliationReport: Final report
    """
    logger.info(f"Reconciling {len(pool)} records")
    grouping = group_records(pool)

    report = ReconciliationReport(
        total_records=len(pool),
        matched_records=grouping.matched_records,
        unmatched_records=grouping.unmatched_records,
        duplicate_records=grouping.duplicate_records,
        keyless_records=grouping.keyless_records,
        matches=grouping.matches,
        duplicates=grouping.duplicates,
    )
    report.analysis = build_analysis(report)

    if grouping.keyless_records:
        logger.warning(
            f"{grouping.keyless_records} records had no GSTIN, invoice or amount field "
            f"and were left out of matching"
        )
    return report


def _record_outcome(source, name, size, rows, file_info):
    status = f"Successfully extracted {len(rows)} records"
    file_info.append(SourceInfo(type=source, name=name, size=size,
                                records_extracted=len(rows), status=status))
    logger.info(f"{source}: {status}")


def _record_failure(source, name, size, error, file_info):
    logger.error(f"Error processing {source}: {str(error)}")
    file_info.append(SourceInfo(type=source, name=name, size=size,
                                status=f"Error: {str(error)}", error=str(error)))


def process_sources(buffers):
    """
    Parse in-memory CSV buffers, one per source.

    Args:
        buffers (dict): Source label -> CSV text (str) or UTF-8 bytes

    Returns:
        tuple: (data, file_info) where data maps source label to rows for the
        sources that parsed, and file_info lists a SourceInfo per source
    """
    data = {}
    file_info = []
    for source, buffer in buffers.items():
        size = len(buffer) if buffer is not None else 0
        try:
            text = decode_text(buffer) if isinstance(buffer, bytes) else buffer
            rows = parse_csv(text)
        except ValueError as e:
            _record_failure(source, source, size, e, file_info)
            continue
        data[source] = rows
        _record_outcome(source, source, size, rows, file_info)
    return data, file_info


def process_files(files):
    """
    Read uploaded files, one per source.

    Args:
        files (dict): Source label -> path of a .csv, .xlsx or .zip file

    Returns:
        tuple: (data, file_info), as for process_sources
    """
    data = {}
    file_info = []
    for source, file_path in files.items():
        file_path = pathlib.Path(file_path)
        size = file_path.stat().st_size if file_path.is_file() else 0
        logger.info(f"Analyzing {source}: {file_path.name} ({size / 1024:.1f} KB)")
        try:
            rows = import_source(file_path)
        except Exception as e:
            _record_failure(source, file_path.name, size, e, file_info)
            continue
        data[source] = rows
        _record_outcome(source, file_path.name, size, rows, file_info)
    return data, file_info


def reconcile_sources(buffers):
    """Reconcile named CSV buffers and return the report.

    Sources that fail to parse are logged and left out.
    """
    data, _ = process_sources(buffers)
    return reconcile_records(RecordPool.from_sources(data))


def run_reconciliation(data, file_info, config=None):
    """
    Reconcile parsed source data into a run result.

    Args:
        data (dict): Source label -> rows
        file_info (list): SourceInfo for every source that was read
        config (ReconciliationConfig, optional): Run settings

    Returns:
        ReconciliationResult: success is False when no source produced records
    """
    config = config or ReconciliationConfig()
    config.files_processed = len(file_info)

    pool = RecordPool.from_sources(data)
    config.total_records = len(pool)

    if len(pool) == 0:
        error = "No data could be extracted from uploaded files."
        if file_info:
            error += " Please check that your files contain valid data and are in the correct format."
        logger.warning(error)
        return ReconciliationResult(success=False, config=config, file_info=file_info, error=error)

    report = reconcile_records(pool)
    return ReconciliationResult(success=True, config=config, file_info=file_info, report=report)


def report_to_dataframe(report):
    """Flatten matched groups into one row per record.

    Args:
        report (ReconciliationReport): Report to export

    Returns:
        pd.DataFrame: export_columns first, then the union of record fields
    """
    rows = []
    for group in report.matches:
        duplicate_ids = {
            record.record_id
            for duplicate in report.duplicates
            if duplicate.matching_key == group.matching_key
            for record in duplicate.records
        }
        for record in group.records:
            row = dict(record.fields)
            row.update({
                'matchingKey': group.matching_key,
                'source': record.source,
                'recordId': record.record_id,
                'duplicate': record.record_id in duplicate_ids,
            })
            rows.append(row)

    if not rows:
        return pd.DataFrame(columns=export_columns)

    df = pd.DataFrame(rows)
    other_columns = [col for col in df.columns if col not in export_columns]
    return df[export_columns + other_columns].fillna('')


def save_reconciliation_results(report, output_path):
    """Save matched records to a CSV or Excel file.

    Args:
        report (ReconciliationReport): Report to export
        output_path (pathlib.Path): Output file, or directory for matched_records.csv

    Returns:
        pathlib.Path: File written
    """
    result = report_to_dataframe(report)

    output_path = pathlib.Path(output_path)
    if output_path.is_dir() or not output_path.suffix:
        output_path = output_path / "matched_records.csv"

    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Writing {len(result)} matched records to {output_path}")

    if output_path.suffix.lower() == '.xlsx':
        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            result.to_excel(writer, sheet_name='Matches', index=False)
    else:
        result.to_csv(output_path, index=False, quoting=csv.QUOTE_NONNUMERIC)
    return output_path


def format_report_summary(report):
    """Format a plain-text summary of a report.

    Args:
        report (ReconciliationReport): Report to summarise

    Returns:
        str: Summary text
    """
    summary = [
        f"Total Records: {report.total_records}",
        f"Matched Records: {report.matched_records}",
        f"Unmatched Records: {report.unmatched_records}",
        f"Duplicate Records: {report.duplicate_records}",
        f"Records Without Matching Key: {report.keyless_records}",
        f"Matched Groups: {len(report.matches)}",
    ]

    if report.analysis is None:
        summary.append("\nNo records to analyse")
        return "\n".join(summary)

    quality = report.analysis['dataQuality']
    summary.extend([
        f"Completeness: {quality['completeness']:.1f}%",
        f"Duplicate Rate: {quality['duplicateRate']:.1f}%",
        f"Reconciliation Rate: {report.analysis['reconciliationRate']:.1f}%",
    ])
    recommendations = report.analysis['recommendations']
    if recommendations:
        summary.append("\nRecommendations:")
        summary.extend(f"- {item}" for item in recommendations)
    return "\n".join(summary)


def generate_reconciliation_report(report, output_path):
    """Write the plain-text summary to a file.

    Args:
        report (ReconciliationReport): Report to summarise
        output_path (pathlib.Path): Output file, or directory for reconciliation_report.txt

    Returns:
        pathlib.Path: File written
    """
    output_path = pathlib.Path(output_path)
    if output_path.is_dir() or not output_path.suffix:
        output_path = output_path / "reconciliation_report.txt"

    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Writing reconciliation report to {output_path}")
    with open(output_path, 'w') as f:
        f.write(format_report_summary(report))
    return output_path


def save_report_json(result, output_dir, reconciliation_type=None):
    """Write a run result as gst-reconciliation-{type}-{date}.json.

    Returns:
        pathlib.Path: File written
    """
    reconciliation_type = reconciliation_type or result.config.reconciliation_type
    output_dir = pathlib.Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    date = datetime.now().strftime('%Y-%m-%d')
    output_path = output_dir / f"gst-reconciliation-{reconciliation_type}-{date}.json"
    logger.debug(f"Writing run result to {output_path}")
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, indent=2)
    return output_path


def parse_source_argument(value):
    """Split a LABEL=PATH command line value."""
    label, sep, path = value.partition('=')
    if not sep or not label.strip() or not path.strip():
        raise argparse.ArgumentTypeError(f"Expected LABEL=PATH, got: {value}")
    return label.strip(), path.strip()


def main(argv=None):
    """Main execution function."""
    parser = argparse.ArgumentParser(description='Reconcile GST source files')
    parser.add_argument('--source', action='append', type=parse_source_argument, default=[],
                        metavar='LABEL=PATH',
                        help=f"Source file, repeatable. Known labels: {', '.join(SOURCE_TYPES)}")
    parser.add_argument('--type', dest='reconciliation_type', choices=RECONCILIATION_TYPES,
                        default='daily', help='Reconciliation type')
    parser.add_argument('--user', default='', help='User running the reconciliation')
    parser.add_argument('--start', default='', help='Start of the date range')
    parser.add_argument('--end', default='', help='End of the date range')
    parser.add_argument('--output', type=str, default=None,
                        help='Output directory (default: RECON_OUTPUT_DIR or DATA_DIR/output)')
    parser.add_argument('--format', dest='export_format', choices=['json', 'csv', 'xlsx'],
                        default='json', help='Extra export of matched records')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    args = parser.parse_args(argv)

    if not args.source:
        parser.error('Please provide at least one --source LABEL=PATH before starting reconciliation.')

    setup_logging(debug=args.debug)
    logger.info("Starting reconciliation process")

    try:
        for label, _ in args.source:
            if label not in SOURCE_TYPES:
                logger.info(f"Using custom source label: {label}")

        config = ReconciliationConfig(
            reconciliation_type=args.reconciliation_type,
            selected_user=args.user,
            date_range={'start': args.start, 'end': args.end},
        )
        data, file_info = process_files(dict(args.source))
        result = run_reconciliation(data, file_info, config)

        output_dir = resolve_output_directory(args.output)
        save_report_json(result, output_dir)

        if result.report is not None:
            generate_reconciliation_report(result.report, output_dir)
            if args.export_format in ('csv', 'xlsx'):
                save_reconciliation_results(
                    result.report, output_dir / f"matched_records.{args.export_format}"
                )
            logger.info(f"Reconciliation summary:\n{format_report_summary(result.report)}")

        return result

    except Exception as e:
        logger.error(f"Error during reconciliation: {str(e)}")
        raise


if __name__ == '__main__':
    main()
