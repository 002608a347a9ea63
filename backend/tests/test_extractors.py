"""
Extractor strategy tests: text reports, Toast exports, and generic sheets.
"""

from datetime import date
from decimal import Decimal

import pytest

from sales_ingest.errors import ExtractionError, MissingRequiredField
from sales_ingest.pipeline.documents import UploadedFile, read_document
from sales_ingest.pipeline.extractors import ExtractionContext, default_extractors, find_date
from sales_ingest.pipeline.extractors.text import parse_item_line, parse_sections
from sales_ingest.pipeline.profiles import PosSystem
from sales_ingest.pipeline.records import Severity, TenderLine

from conftest import brink_text, generic_csv, pdf_document, toast_csv


FALLBACK_DAY = date(2020, 1, 1)


@pytest.fixture
def extractors():
    return default_extractors()


@pytest.fixture
def context():
    return ExtractionContext(team_id="store-1", date=FALLBACK_DAY)


def _sheet(name, data):
    return read_document(UploadedFile(name=name, data=data))


class TestDateParsing:
    def test_iso(self):
        assert find_date("Report for 2026-01-14") == date(2026, 1, 14)

    def test_weekday_month_day_year(self):
        assert find_date("Wednesday, January 14, 2026") == date(2026, 1, 14)

    def test_us_with_two_digit_year(self):
        assert find_date("Date 1/14/26") == date(2026, 1, 14)

    def test_invalid_dates_skipped(self):
        assert find_date("13/45/2026 then 02/03/2026") == date(2026, 2, 3)

    def test_print_timestamp_loses_to_business_day(self):
        text = "Printed 2026-10-17 06:02\nMonday, October 13, 2026"
        assert find_date(text) == date(2026, 10, 13)

    def test_us_date_preferred_over_iso(self):
        assert find_date("Run 2026-10-17 06:02 for 10/13/2026") == date(2026, 10, 13)

    def test_labelled_date_wins(self):
        text = "Printed Friday, October 17, 2026\nBusiness Date: 10/13/2026"
        assert find_date(text) == date(2026, 10, 13)

    def test_updated_is_not_a_label(self):
        assert find_date("Updated 2026-10-17 for 10/13/2026") == date(2026, 10, 13)


class TestTextLines:
    def test_tender_row_reads_payments_tips_total(self):
        tender = parse_item_line("Visa   136   $4,273.02   $91.30   $4,364.32", tender=True)
        assert isinstance(tender, TenderLine)
        assert tender.quantity == 136
        assert tender.payments == Decimal("4273.02")
        assert tender.tips == Decimal("91.30")
        assert tender.total == Decimal("4364.32")

    def test_item_row_with_percent(self):
        item = parse_item_line("EXT DoorDash    48   $1,244.76   21.67%")
        assert item.name == "EXT DoorDash"
        assert item.total == Decimal("1244.76")
        assert item.percent == Decimal("21.67")

    def test_total_row_closes_section(self):
        groups = parse_sections("Destinations\nDine In 2 $10.00\nTotal 2 $10.00\nTakeout 1 $5.00\n")
        assert [i.name for i in groups["destinations"]] == ["Dine In"]


class TestTextReportExtractor:
    def test_brink_report(self, extractors, context, business_day):
        result = extractors[PosSystem.BRINK].extract(pdf_document(brink_text(business_day)), context)
        record = result.record
        assert result.pos_system is PosSystem.BRINK
        assert result.extracted_date == business_day
        assert record.date == business_day
        assert record.location == "Main St"
        assert record.gross_sales == Decimal("5744.76")
        assert record.net_sales == Decimal("5200.00")
        assert record.order_count == 198
        assert record.order_average == Decimal("26.26")
        assert record.payment_breakdown.total_cash == Decimal("1471.74")
        assert record.payment_breakdown.non_cash == Decimal("4273.02")
        assert [d.name for d in record.destinations] == ["Dine In", "EXT DoorDash"]
        assert len(record.tenders) == 2
        assert result.confidence == 92

    def test_missing_gross_is_an_error(self, extractors, context):
        text = "Brink POS\nNet Sales: $100.00\nTotal Orders: 4\nnothing else here"
        with pytest.raises(MissingRequiredField) as exc:
            extractors[PosSystem.BRINK].extract(pdf_document(text), context)
        assert exc.value.kind == ExtractionError.MISSING_REQUIRED_FIELD

    def test_missing_net_flagged_with_suggestion(self, extractors, context):
        text = "Brink POS report\nGross Sales: $100.00\nTotal Orders: 4\n"
        result = extractors[PosSystem.BRINK].extract(pdf_document(text), context)
        net = [f for f in result.findings if f.field == "net_sales"]
        assert net and net[0].severity is Severity.ERROR
        assert net[0].suggested_value == Decimal("100.00")
        # No date in the text: the submission date is used.
        assert result.record.date == FALLBACK_DAY
        assert result.extracted_date is None

    def test_text_extractor_refuses_spreadsheets(self, extractors, context, business_day):
        with pytest.raises(ExtractionError) as exc:
            extractors[PosSystem.BRINK].extract(_sheet("day.csv", generic_csv(business_day)), context)
        assert exc.value.kind == ExtractionError.UNSUPPORTED_LAYOUT


class TestToastSheet:
    def test_sections(self, extractors, context, business_day):
        result = extractors[PosSystem.TOAST].extract(_sheet("summary.csv", toast_csv(business_day)), context)
        record = result.record
        assert result.extracted_date == business_day
        assert record.location == "Main St"
        assert record.gross_sales == Decimal("1100.00")
        assert record.net_sales == Decimal("1000.00")
        assert record.order_count == 40
        assert [d.name for d in record.destinations] == ["Dine In", "EXT DoorDash"]
        assert record.payment_breakdown.total_cash == Decimal("300.00")
        assert record.payment_breakdown.non_cash == Decimal("800.00")
        assert record.discounts[0].total == Decimal("100.00")
        assert record.taxes[0].total == Decimal("80.00")
        # revenue, net sales, service mode, payments
        assert result.confidence == 50 + 8 * 4
        assert not result.findings

    def test_few_sections_warn(self, extractors, context):
        data = b"SalesSummary_2026-01-14\nNet sales summary\nGross sales,50.00\n"
        result = extractors[PosSystem.TOAST].extract(_sheet("summary.csv", data), context)
        assert any(f.field == "format" and f.severity is Severity.WARNING for f in result.findings)
        assert result.confidence == 58


class TestGenericSheet:
    def test_tender_table_round_trip(self, extractors, context, business_day):
        result = extractors[PosSystem.GENERIC].extract(_sheet("day.csv", generic_csv(business_day)), context)
        record = result.record
        breakdown = record.payment_breakdown
        assert breakdown.total_cash == Decimal("1471.74")
        assert breakdown.non_cash == Decimal("4273.02")
        assert abs(record.gross_sales - (breakdown.non_cash + breakdown.total_cash)) <= Decimal("1.00")
        assert record.date == business_day
        assert record.order_count == 198

    def test_wide_layout(self, extractors, context):
        data = b"Date,Gross Sales,Net Sales,Orders,Cash,Card\n2026-01-14,500.00,450.00,20,100.00,400.00\n"
        record = extractors[PosSystem.GENERIC].extract(_sheet("wide.csv", data), context).record
        assert record.gross_sales == Decimal("500.00")
        assert record.net_sales == Decimal("450.00")
        assert record.order_count == 20
        assert record.payment_breakdown.non_cash == Decimal("400.00")
        assert record.date == date(2026, 1, 14)

    def test_gross_from_tenders_when_label_missing(self, extractors, context, business_day):
        data = generic_csv(business_day, gross=None)
        result = extractors[PosSystem.GENERIC].extract(_sheet("day.csv", data), context)
        assert result.record.gross_sales == Decimal("5744.76")
        assert any(f.field == "gross_sales" and f.severity is Severity.WARNING for f in result.findings)

    def test_no_figures_at_all(self, extractors, context):
        with pytest.raises(MissingRequiredField):
            extractors[PosSystem.GENERIC].extract(_sheet("notes.csv", b"Notes,hello\nMore,text\n"), context)

    def test_generic_reads_pdf_text_with_every_label(self, extractors, context):
        text = "Daily report\nGross Amount: $300.00\nNet Amount: $280.00\nTransactions: 12\n"
        record = extractors[PosSystem.GENERIC].extract(pdf_document(text), context).record
        assert record.gross_sales == Decimal("300.00")
        assert record.net_sales == Decimal("280.00")
        assert record.order_count == 12
