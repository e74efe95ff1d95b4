import json
from datetime import datetime

import pandas as pd
import pytest

from gst_reconcile.reconcile import (
    format_report_summary,
    generate_reconciliation_report,
    main,
    parse_source_argument,
    process_sources,
    reconcile_records,
    reconcile_sources,
    report_to_dataframe,
    run_reconciliation,
    save_reconciliation_results,
    save_report_json,
)
from gst_reconcile.records import RecordPool


@pytest.fixture
def sample_report(sample_sources):
    """Report for the GSTR-2B / purchase register sample."""
    return reconcile_sources(sample_sources)


class TestTabularExport:
    """Test suite for flattening matches into a table"""

    def test_report_to_dataframe(self, sample_report):
        """Test one row per matched record with duplicate flags"""
        df = report_to_dataframe(sample_report)

        assert list(df.columns[:4]) == ['matchingKey', 'source', 'recordId', 'duplicate']
        assert len(df) == 3
        assert df['recordId'].tolist() == ['gstr2b_0', 'purchaseRegister_2', 'purchaseRegister_4']
        assert df['duplicate'].tolist() == [False, True, True]
        assert 'Supplier GSTIN' in df.columns
        assert 'GSTIN of Supplier' in df.columns

    def test_empty_report(self):
        """Test an empty report still has the export columns"""
        df = report_to_dataframe(reconcile_records(RecordPool()))
        assert df.empty
        assert list(df.columns) == ['matchingKey', 'source', 'recordId', 'duplicate']

    def test_save_csv(self, sample_report, tmp_path):
        """Test saving to a directory writes matched_records.csv"""
        path = save_reconciliation_results(sample_report, tmp_path)

        assert path == tmp_path / 'matched_records.csv'
        saved = pd.read_csv(path)
        assert len(saved) == 3
        assert saved['matchingKey'].unique().tolist() == ['27AABCU9603R1ZX']

    def test_save_xlsx(self, sample_report, tmp_path):
        """Test saving to an Excel file"""
        path = save_reconciliation_results(sample_report, tmp_path / 'out' / 'matches.xlsx')

        saved = pd.read_excel(path, sheet_name='Matches')
        assert saved['source'].tolist() == ['gstr2b', 'purchaseRegister', 'purchaseRegister']


class TestTextSummary:
    """Test suite for the plain-text report"""

    def test_format_report_summary(self, sample_report):
        """Test counts, rates and recommendations are listed"""
        summary = format_report_summary(sample_report)

        assert "Total Records: 5" in summary
        assert "Matched Records: 3" in summary
        assert "Unmatched Records: 2" in summary
        assert "Duplicate Records: 2" in summary
        assert "Completeness: 60.0%" in summary
        assert "Reconciliation Rate: 60.0%" in summary
        assert "- Found 2 duplicate records - consider data deduplication" in summary

    def test_summary_without_records(self):
        """Test the summary of an empty run"""
        summary = format_report_summary(reconcile_records(RecordPool()))
        assert "Total Records: 0" in summary
        assert "No records to analyse" in summary

    def test_generate_reconciliation_report(self, sample_report, tmp_path):
        """Test the report file is written into a directory"""
        path = generate_reconciliation_report(sample_report, tmp_path)

        assert path.name == 'reconciliation_report.txt'
        assert path.read_text().startswith("Total Records: 5")


class TestJsonDownload:
    """Test suite for the JSON result file"""

    def test_save_report_json(self, sample_sources, tmp_path):
        """Test the file name and content"""
        data, file_info = process_sources(sample_sources)
        result = run_reconciliation(data, file_info)

        path = save_report_json(result, tmp_path, 'weekly')
        today = datetime.now().strftime('%Y-%m-%d')
        assert path.name == f'gst-reconciliation-weekly-{today}.json'

        payload = json.loads(path.read_text(encoding='utf-8'))
        assert payload['success'] is True
        assert payload['reconciliationReport']['summary']['matchedRecords'] == 3
        assert payload['reconciliationReport']['analysis']['reconciliationRate'] == 60.0


class TestCommandLine:
    """Test suite for the command line entry point"""

    def test_parse_source_argument(self):
        """Test LABEL=PATH values"""
        assert parse_source_argument('gstr2b=data/gstr2b.csv') == ('gstr2b', 'data/gstr2b.csv')

    def test_parse_source_argument_invalid(self):
        """Test values without a label or path"""
        import argparse
        with pytest.raises(argparse.ArgumentTypeError):
            parse_source_argument('gstr2b.csv')
        with pytest.raises(argparse.ArgumentTypeError):
            parse_source_argument('=gstr2b.csv')

    def test_main(self, write_csv, sample_sources, tmp_path, monkeypatch):
        """Test a full run from the command line"""
        monkeypatch.setenv('LOG_FILE', str(tmp_path / 'logs' / 'recon.log'))
        gstr2b = write_csv('gstr2b.csv', sample_sources['gstr2b'])
        register = write_csv('pr.csv', sample_sources['purchaseRegister'])
        output = tmp_path / 'output'

        result = main([
            '--source', f'gstr2b={gstr2b}',
            '--source', f'purchaseRegister={register}',
            '--type', 'monthly',
            '--user', 'Laxmi',
            '--output', str(output),
            '--format', 'csv',
        ])

        assert result.success
        assert result.config.reconciliation_type == 'monthly'
        assert len(list(output.glob('gst-reconciliation-monthly-*.json'))) == 1
        assert (output / 'reconciliation_report.txt').exists()
        assert (output / 'matched_records.csv').exists()

    def test_main_without_data(self, write_csv, tmp_path, monkeypatch):
        """Test a run where every source fails still writes the result"""
        monkeypatch.setenv('LOG_FILE', str(tmp_path / 'recon.log'))
        monkeypatch.setenv('RECON_OUTPUT_DIR', str(tmp_path / 'results'))
        bad = write_csv('gstr2a.csv', 'GSTIN\n')

        result = main(['--source', f'gstr2a={bad}'])

        assert not result.success
        files = list((tmp_path / 'results').glob('gst-reconciliation-daily-*.json'))
        assert len(files) == 1
        payload = json.loads(files[0].read_text(encoding='utf-8'))
        assert payload['processedData']['fileInfo'][0]['status'].startswith('Error: too few rows')

    def test_main_requires_source(self):
        """Test the command line refuses to run without sources"""
        with pytest.raises(SystemExit):
            main([])
