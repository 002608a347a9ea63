# Overview: Flask CLI command groups for running upload batches and managing sales channels.

# backend/sales_ingest/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Upload batches:
# - python -m flask uploads submit report1.pdf report2.csv --org-id 1 --team-id store-7 [--date 2026-01-31] [--format toast]
#   Run a batch synchronously and print per-file results.
# - python -m flask uploads status 12 --org-id 1
#   Show batch progress and per-file outcomes.
# - python -m flask uploads staged 12 --org-id 1
#   List staged records with their findings.
#
# Sales channels:
# - python -m flask channels add --org-id 1 --name DoorDash --rate 0.20 --alias "EXT DoorDash"
#   Register a percentage-commission channel (or --flat-fee 25.00).
# - python -m flask channels list --org-id 1
#   List active channels.

import os

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import IngestError
from .pipeline.documents import UploadedFile
from .pipeline.channels import FLAT_FEE, PERCENTAGE
from .services import channel_service, upload_batch_service, upload_messages
from .services.batch_coordinator import BatchCoordinator
from .time_utils import parse_iso_date


@click.group('uploads')
def uploads_group():
    """Sales report upload commands."""


@uploads_group.command('submit')
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--team-id', required=True, help='Team (store) the reports belong to')
@click.option('--date', 'business_date', help='Business date fallback (YYYY-MM-DD)')
@click.option('--format', 'forced_format', help='Force a POS format (brink, square, toast, lightspeed, clover, generic)')
@with_appcontext
def submit_cli(files, org_id, team_id, business_date, forced_format):
    """
    Run an upload batch synchronously.

    Example:
        flask uploads submit day1.pdf day2.csv --org-id 1 --team-id store-7
    """
    uploads = []
    for path in files:
        with open(path, 'rb') as handle:
            uploads.append(UploadedFile(name=os.path.basename(path), data=handle.read()))

    try:
        batch_id = BatchCoordinator.from_app(current_app).submit(
            uploads,
            org_id=org_id,
            team_id=team_id,
            business_date=parse_iso_date(business_date),
            forced_format=forced_format,
            actor='cli',
            wait=True,
        )
    except ValueError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return

    batch = upload_batch_service.get_batch(batch_id, org_id)
    click.echo(f"PASS Batch {batch.id}: {upload_messages.batch_summary(batch)}")
    _print_files(batch)


def _print_files(batch):
    click.echo("\n" + "="*100)
    click.echo(f"{'#':<4} {'File':<32} {'Status':<9} {'Format':<11} {'Conf':<5} {'Detail'}")
    click.echo("="*100)
    for f in batch.files:
        conf = f.detection_confidence if f.detection_confidence is not None else "-"
        detail = f.error_message or (f"staged #{f.staged_record_id}" if f.staged_record_id else "")
        click.echo(f"{f.position:<4} {f.file_name[:32]:<32} {f.status:<9} {(f.detected_format or '-'):<11} {conf!s:<5} {detail}")
    click.echo("="*100 + "\n")


@uploads_group.command('status')
@click.argument('batch_id', type=int)
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def status_cli(batch_id, org_id):
    """Show batch progress and per-file outcomes."""
    try:
        batch = upload_batch_service.get_batch(batch_id, org_id)
    except IngestError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    click.echo(f"Batch {batch.id} [{batch.status}] {batch.name}")
    click.echo(f"   {upload_messages.batch_summary(batch)}")
    _print_files(batch)


@uploads_group.command('staged')
@click.argument('batch_id', type=int)
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def staged_cli(batch_id, org_id):
    """List staged records with their findings."""
    try:
        staged = upload_batch_service.list_staged(batch_id, org_id)
    except IngestError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return

    if not staged:
        click.echo("No staged records found.")
        return

    for record in staged:
        merged = upload_batch_service.merged_record(record)
        click.echo(
            f"#{record.id} {record.file_name} [{record.status}] {merged.date.isoformat()} "
            f"gross={merged.gross_sales} net={merged.net_sales} orders={merged.order_count} "
            f"confidence={record.confidence_score}"
        )
        for finding in upload_batch_service.findings_for(record):
            click.echo(f"   {finding.severity.value.upper():<8} {finding.field}: {finding.message}")


@click.group('channels')
def channels_group():
    """Sales channel registry commands."""


@channels_group.command('add')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', required=True, help='Channel name')
@click.option('--rate', type=float, help='Commission rate as a fraction (0.20 = 20%)')
@click.option('--flat-fee', type=float, help='Flat fee per day of sales')
@click.option('--alias', 'aliases', multiple=True, help='Destination name used in POS reports')
@with_appcontext
def add_channel_cli(org_id, name, rate, flat_fee, aliases):
    """
    Register a sales channel.

    Example:
        flask channels add --org-id 1 --name DoorDash --rate 0.20 --alias "EXT DoorDash"
    """
    if (rate is None) == (flat_fee is None):
        click.echo("FAIL Error: pass exactly one of --rate or --flat-fee")
        return
    try:
        channel = channel_service.create_channel(
            org_id=org_id,
            name=name,
            commission_type=PERCENTAGE if rate is not None else FLAT_FEE,
            commission_rate=str(rate) if rate is not None else None,
            flat_fee_amount=str(flat_fee) if flat_fee is not None else None,
            aliases=list(aliases),
        )
    except IngestError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    click.echo(f"PASS Created channel: {channel.name} (ID: {channel.id})")


@channels_group.command('list')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def list_channels_cli(org_id):
    """List active sales channels."""
    channels = channel_service.list_channels(org_id)
    if not channels:
        click.echo("No channels found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Type':<11} {'Rate':<8} {'Fee':<9} {'Aliases'}")
    click.echo("="*80)
    for channel in channels:
        aliases = ", ".join(channel.aliases or []) or "-"
        click.echo(
            f"{channel.id:<5} {channel.name:<20} {channel.commission_type:<11} "
            f"{channel.commission_rate!s:<8} {channel.flat_fee_amount!s:<9} {aliases}"
        )
    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(uploads_group)
    app.cli.add_command(channels_group)
