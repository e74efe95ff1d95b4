import pytest
import pandas as pd

from gst_reconcile.records import RecordPool

# Sample CSV content for each source
gstr2b_sample_csv = (
    "GSTIN of Supplier,Trade Name,Invoice Number,Invoice Value,Taxable Value\n"
    "27AABCU9603R1ZX,Acme Traders,INV-001,\"1,180.00\",1000\n"
    "29AAGCB1286Q1Z4,Bright Supplies,INV-002,590,500\n"
)

purchase_register_sample_csv = (
    "Supplier GSTIN,Supplier Name,Invoice No,Amount\r\n"
    "27AABCU9603R1ZX,\"Acme Traders, Pune\",INV-001,1180\r\n"
    "33AAACR5055K1Z8,Metro Stores,INV-107,2360\r\n"
    "27AABCU9603R1ZX,\"Acme Traders, Pune\",INV-009,450\r\n"
)

ims_sample_csv = (
    "Invoice Number,Amount\n"
    "INV-001,1180\n"
)

gstr2b_sample_rows = {
    'GSTIN of Supplier': ['27AABCU9603R1ZX', '29AAGCB1286Q1Z4'],
    'Trade Name': ['Acme Traders', 'Bright Supplies'],
    'Invoice Number': ['INV-001', 'INV-002'],
    'Invoice Value': [1180.0, 590.0],
}


@pytest.fixture
def sample_sources():
    """CSV text per source label, in upload order."""
    return {
        'gstr2b': gstr2b_sample_csv,
        'purchaseRegister': purchase_register_sample_csv,
    }


@pytest.fixture
def make_pool():
    """Helper fixture to build a record pool from source -> list of row dicts."""
    def _make_pool(data):
        return RecordPool.from_sources(data)
    return _make_pool


@pytest.fixture
def write_csv(tmp_path):
    """Helper fixture to write CSV text to a file under tmp_path."""
    def _write(name, content):
        path = tmp_path / name
        path.write_text(content, encoding='utf-8')
        return path
    return _write


@pytest.fixture
def gstr2b_xlsx(tmp_path):
    """GSTR-2B sample saved as an Excel workbook."""
    path = tmp_path / 'gstr2b.xlsx'
    pd.DataFrame(gstr2b_sample_rows).to_excel(path, index=False)
    return path


@pytest.fixture
def ims_csv():
    """One-line IMS export keyed by invoice number."""
    return ims_sample_csv
