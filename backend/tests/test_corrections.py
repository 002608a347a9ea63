"""
Correction patch tests: path checks, merging, and the merged view.
"""

from datetime import date
from decimal import Decimal

import pytest

from sales_ingest.errors import CorrectionError
from sales_ingest.pipeline.corrections import apply_corrections, merge_corrections, normalize_patch
from sales_ingest.pipeline.records import TenderLine

from conftest import daily_sales


DAY = date(2026, 1, 14)


@pytest.fixture
def extracted():
    record = daily_sales(DAY, gross="110.00", net="100.00")
    record.tenders = [
        TenderLine(name="Visa", quantity=8, payments=Decimal("100.00"), tips=Decimal("10.00"), total=Decimal("110.00")),
    ]
    return record.to_dict()


class TestNormalizePatch:
    def test_overlapping_paths_rejected(self):
        with pytest.raises(CorrectionError) as exc:
            normalize_patch({"labor": {"cost": "10.00"}, "labor.cost": "12.00"})
        assert "overlap" in str(exc.value)

    @pytest.mark.parametrize("path", ["bogus", "gross_sales.amount", "labor.overtime", "tenders.first.payments"])
    def test_unknown_paths_rejected(self, path):
        with pytest.raises(CorrectionError):
            normalize_patch({path: "1.00"})

    def test_bad_values_rejected(self):
        with pytest.raises(CorrectionError):
            normalize_patch({"gross_sales": "lots"})
        with pytest.raises(CorrectionError):
            normalize_patch({"order_count": "2.5"})
        with pytest.raises(CorrectionError):
            normalize_patch({"date": "14/01/2026"})

    def test_non_finite_amounts_rejected(self):
        with pytest.raises(CorrectionError):
            normalize_patch({"gross_sales": "NaN"})
        with pytest.raises(CorrectionError):
            normalize_patch({"tenders.0.payments": "Infinity"})

    def test_index_checked_against_record(self, extracted):
        with pytest.raises(CorrectionError):
            normalize_patch({"tenders.3.payments": "5.00"}, extracted)

    def test_dates_stored_as_iso(self):
        assert normalize_patch({"date": date(2026, 1, 13)}) == {"date": "2026-01-13"}


class TestMergeCorrections:
    def test_later_value_wins(self):
        assert merge_corrections({"gross_sales": "1.00"}, {"gross_sales": "2.00"}) == {"gross_sales": "2.00"}

    def test_parent_replaces_children(self):
        merged = merge_corrections({"labor.cost": "10.00"}, {"labor": {"hours": "4"}})
        assert merged == {"labor": {"hours": "4"}}

    def test_child_edits_inside_parent(self):
        merged = merge_corrections({"labor": {"cost": "10.00"}}, {"labor.hours": "4"})
        assert merged == {"labor": {"cost": "10.00", "hours": "4"}}


class TestApplyCorrections:
    def test_extracted_data_untouched(self, extracted):
        record = apply_corrections(extracted, {"gross_sales": "120.00"})
        assert record.gross_sales == Decimal("120.00")
        assert extracted["gross_sales"] == "110.00"

    def test_tender_total_rederived(self, extracted):
        record = apply_corrections(extracted, {"tenders.0.payments": "105.00"})
        assert record.tenders[0].payments == Decimal("105.00")
        assert record.tenders[0].total == Decimal("115.00")

    def test_date_correction(self, extracted):
        assert apply_corrections(extracted, {"date": "2026-01-13"}).date == date(2026, 1, 13)

    def test_missing_item_rejected(self, extracted):
        with pytest.raises(CorrectionError):
            apply_corrections(extracted, {"destinations.0.total": "5.00"})
