"""
Pytest fixtures for the sales ingestion backend tests.

Provides test database setup, sample report builders, and test client.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sales_ingest import create_app
from sales_ingest.extensions import db
from sales_ingest.models.uploads import STAGED_APPROVED
from sales_ingest.pipeline.documents import DocumentKind, SourceDocument, UploadedFile
from sales_ingest.pipeline.records import DailySales, LineItem, TenderLine
from sales_ingest.services import upload_batch_service


ORG_ID = 1
OTHER_ORG_ID = 2
TEAM_ID = "store-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def business_day():
    """A recent day, so age checks never flag sample reports."""
    return date.today() - timedelta(days=3)


def generic_csv(day: date, *, gross="5744.76", net="5200.00", orders="198", extra_rows=()) -> bytes:
    """Generic sheet with label/value rows and a tender table."""
    lines = [f"Business Date,{day.isoformat()}"]
    if gross is not None:
        lines.append(f"Gross Sales,{gross}")
    if net is not None:
        lines.append(f"Net Sales,{net}")
    if orders is not None:
        lines.append(f"Orders,{orders}")
    lines.extend(extra_rows)
    lines += [
        "",
        "Tender,Count,Payments,Tips",
        "Visa,136,4273.02,91.30",
        "Cash,62,1471.74,0",
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")


def toast_csv(day: date) -> bytes:
    lines = [
        f"SalesSummary_{day.isoformat()}_{day.isoformat()}",
        "--Main St",
        "",
        "Revenue summary",
        "Net sales,1000.00",
        "Tax amount,80.00",
        "Tips,50.00",
        "",
        "Net sales summary",
        "Gross sales,1100.00",
        "Sales discounts,-100.00",
        "Sales refunds,0.00",
        "",
        "Service mode summary",
        "Service mode,Orders,Net sales",
        "Dine In,30,700.00",
        "EXT DoorDash,10,300.00",
        "Total,40,1000.00",
        "",
        "Payments summary",
        "Payment type,Count,Amount,Tips,Total",
        "Credit,30,800.00,50.00,850.00",
        "Cash,10,300.00,0.00,300.00",
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")


def brink_text(day: date) -> str:
    return "\n".join([
        "Brink POS  Daily Sales Summary",
        "Location: Main St",
        f"Business Date: {day.month:02d}/{day.day:02d}/{day.year}",
        "Gross Sales: $5,744.76",
        "Net Sales: $5,200.00",
        "Total Orders: 198",
        "Total Cash: $1,471.74",
        "Non-Cash Payments: $4,273.02",
        "Total Tips: $91.30",
        "",
        "Destinations",
        "Dine In        150   $4,500.00   78.33%",
        "EXT DoorDash    48   $1,244.76   21.67%",
        "Total          198   $5,744.76",
        "",
        "Tenders",
        "Visa   136   $4,273.02   $91.30   $4,364.32",
        "Cash    62   $1,471.74    $0.00   $1,471.74",
        "",
    ])


def pdf_document(text: str, name: str = "report.pdf") -> SourceDocument:
    return SourceDocument(file_name=name, kind=DocumentKind.PDF, text=text)


class TextPdfReader:
    """Reads `.pdf` uploads as UTF-8 text so tests need no real PDF bytes."""

    def read(self, upload: UploadedFile) -> SourceDocument:
        from sales_ingest.pipeline.documents import kind_for, read_document

        if kind_for(upload.name) is DocumentKind.PDF:
            return pdf_document(upload.data.decode("utf-8"), upload.name)
        return read_document(upload)


def daily_sales(day: date, *, gross="100.00", net="90.00", orders=10, team_id=TEAM_ID, destinations=()) -> DailySales:
    gross = Decimal(gross)
    net = Decimal(net)
    record = DailySales(
        date=day,
        team_id=team_id,
        gross_sales=gross,
        net_sales=net,
        order_count=orders,
        order_average=(net / orders).quantize(Decimal("0.01")) if orders else Decimal("0"),
        tenders=[TenderLine(name="Card", quantity=orders, total=gross, percent=Decimal("100"), payments=gross)],
        destinations=[LineItem(name=n, quantity=q, total=Decimal(t)) for n, q, t in destinations],
    )
    return record


@pytest.fixture
def stage_record(db_session):
    """Stage a record straight into a fresh batch; approved unless told otherwise."""

    def _stage(record: DailySales, *, org_id=ORG_ID, status=STAGED_APPROVED, file_name="report.csv"):
        batch = upload_batch_service.create_batch(
            org_id=org_id,
            team_id=record.team_id,
            file_names=[(file_name, 100)],
        )
        staged = upload_batch_service.stage(
            batch_id=batch.id,
            org_id=org_id,
            file_name=file_name,
            detected_format="generic",
            confidence=90,
            record=record,
            findings=[],
            status=status,
        )
        db_session.commit()
        return staged

    return _stage


def org_headers(org_id: int = ORG_ID, actor: str = "reviewer-1") -> dict:
    """Helper to create tenant context headers."""
    return {'X-Organization-Id': str(org_id), 'X-Actor-Id': actor}
