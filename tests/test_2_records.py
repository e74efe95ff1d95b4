import pytest
from dataclasses import FrozenInstanceError

from gst_reconcile.records import Record, RecordPool


class TestRecordPool:
    """Test suite for tagging rows as records"""

    def test_record_ids_use_pool_index(self):
        """Test ids count across sources, not per source"""
        pool = RecordPool()
        first = pool.add_rows('gstr2a', [{'GSTIN': 'A'}, {'GSTIN': 'B'}])
        second = pool.add_rows('gstr2b', [{'GSTIN': 'C'}])

        assert [r.record_id for r in first] == ['gstr2a_0', 'gstr2a_1']
        assert [r.record_id for r in second] == ['gstr2b_2']
        assert len(pool) == 3

    def test_pool_order(self, make_pool):
        """Test pool order is source order, then row order"""
        pool = make_pool({
            'ims': [{'Invoice': 'X'}],
            'purchaseRegister': [{'Invoice': 'Y'}, {'Invoice': 'Z'}],
        })
        assert [(r.source, r.fields['Invoice']) for r in pool] == [
            ('ims', 'X'),
            ('purchaseRegister', 'Y'),
            ('purchaseRegister', 'Z'),
        ]

    def test_pools_are_independent(self, make_pool):
        """Test a new pool starts counting from zero"""
        make_pool({'gstr2a': [{'A': 1.0}, {'A': 2.0}]})
        pool = make_pool({'gstr2a': [{'A': 3.0}]})
        assert pool.records[0].record_id == 'gstr2a_0'

    def test_records_are_read_only(self):
        """Test records cannot be changed after creation"""
        row = {'GSTIN': '27AABCU9603R1ZX'}
        record = RecordPool().add_rows('gstr2b', [row])[0]

        with pytest.raises(FrozenInstanceError):
            record.source = 'other'
        with pytest.raises(TypeError):
            record.fields['GSTIN'] = 'changed'

        row['GSTIN'] = 'changed'
        assert record.fields['GSTIN'] == '27AABCU9603R1ZX'

    def test_records_are_hashable(self):
        """Test records can be collected in sets, keyed by record id"""
        pool = RecordPool()
        records = pool.add_rows('gstr2b', [{'GSTIN': 'A'}, {'GSTIN': 'A'}])

        assert len({records[0], records[1], records[0]}) == 2
        assert hash(records[0]) == hash('gstr2b_0')

    def test_to_dict(self):
        """Test records flatten to fields plus source and recordId"""
        record = RecordPool().add_rows('ims', [{'Invoice Number': 'INV-001', 'Amount': 100.0}])[0]
        assert record.to_dict() == {
            'Invoice Number': 'INV-001',
            'Amount': 100.0,
            'source': 'ims',
            'recordId': 'ims_0',
        }
        assert isinstance(record, Record)
