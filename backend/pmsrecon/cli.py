# Overview: Flask CLI command groups for pumps, readings, prices and calculations.

# backend/pmsrecon/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to pmsrecon (PowerShell: $env:FLASK_APP="pmsrecon").
# - Use: python -m flask <group> <command> [options]
#
# Database:
# - python -m flask db upgrade
#   Apply migrations (Flask-Migrate).
#
# Pumps:
# - python -m flask pumps list --station-id 1 [--active-only]
#   List pump configurations for a station.
#
# Readings:
# - python -m flask readings status --station-id 1 --date 2026-01-15
#   Show which active pumps have opening/closing readings for a day.
#
# Prices:
# - python -m flask prices set --product-id 1 --from 2026-01-01 --price 650.00
#   Insert or replace a unit price effective from a date.
# - python -m flask prices list [--product-id 1]
#   Show the price history.
#
# Calculations:
# - python -m flask calc run --station-id 1 --date 2026-01-15 [--force] [--threshold 20]
#   Calculate every active pump at a station for a day.
# - python -m flask calc approve 42 --approve|--reject [--notes "..."]
#   Record an approval decision on a pending calculation.

import click
from flask.cli import with_appcontext

from .errors import PmsError
from .extensions import db
from .services import calculation_service, pricing_service, pump_service, status_service
from . import repositories

CLI_USER = "cli"


@click.group('pumps')
def pumps_group():
    """Pump registry inspection commands."""


@pumps_group.command('list')
@click.option('--station-id', type=int, required=True, help='Station ID')
@click.option('--active-only', is_flag=True, help='Only pumps with status active')
@with_appcontext
def list_pumps_cli(station_id, active_only):
    """List pump configurations for a station."""
    pumps = pump_service.list_pumps(station_id, active_only=active_only)

    if not pumps:
        click.echo("No pumps found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Number':<10} {'Product':<9} {'Capacity':<14} {'Status':<12} {'Active'}")
    click.echo("="*80)

    for pump in pumps:
        active_str = "Yes" if pump.is_active else "No"
        click.echo(
            f"{pump.id:<5} {pump.pump_number:<10} {pump.pms_product_id:<9} "
            f"{str(pump.meter_capacity):<14} {pump.status:<12} {active_str}"
        )

    click.echo("="*80 + "\n")


@click.group('readings')
def readings_group():
    """Meter reading inspection commands."""


@readings_group.command('status')
@click.option('--station-id', type=int, required=True, help='Station ID')
@click.option('--date', 'status_date', required=True, help='Reading date (YYYY-MM-DD)')
@with_appcontext
def daily_status_cli(station_id, status_date):
    """Show which active pumps have opening/closing readings for a day."""
    try:
        status = status_service.get_daily_status(station_id, status_date)
    except PmsError as e:
        click.echo(f"FAIL {e.message}")
        return

    for row in status["pumps"]:
        opening = row["opening_value"] or "-"
        closing = row["closing_value"] or "-"
        click.echo(f"{row['pump_number']:<10} opening {opening:<14} closing {closing}")

    summary = status["summary"]
    click.echo(
        f"{summary['opening_count']}/{summary['pump_count']} opening, "
        f"{summary['closing_count']}/{summary['pump_count']} closing"
    )


@click.group('prices')
def prices_group():
    """Local fuel price history."""


@prices_group.command('set')
@click.option('--product-id', type=int, required=True, help='PMS product ID')
@click.option('--from', 'effective_from', required=True, help='Effective date (YYYY-MM-DD)')
@click.option('--price', required=True, help='Unit price')
@with_appcontext
def set_price_cli(product_id, effective_from, price):
    """Insert or replace a unit price."""
    try:
        row = pricing_service.set_price(product_id, effective_from, price)
        db.session.commit()
    except PmsError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Product {row.product_id} costs {row.unit_price} from {row.effective_from.isoformat()}")


@prices_group.command('list')
@click.option('--product-id', type=int, help='Filter by product')
@with_appcontext
def list_prices_cli(product_id):
    """Show the price history."""
    rows = repositories.prices.list_for_product(product_id)
    if not rows:
        click.echo("No prices found.")
        return

    for row in rows:
        click.echo(f"{row.product_id:<8} {row.effective_from.isoformat():<12} {row.unit_price}")


@click.group('calc')
def calc_group():
    """Daily PMS calculation commands."""


@calc_group.command('run')
@click.option('--station-id', type=int, required=True, help='Station ID')
@click.option('--date', 'calculation_date', required=True, help='Calculation date (YYYY-MM-DD)')
@click.option('--force', is_flag=True, help='Recompute existing calculations')
@click.option('--threshold', default=None, help='Deviation threshold percent')
@with_appcontext
def run_calculation_cli(station_id, calculation_date, force, threshold):
    """Calculate every active pump at a station for a day."""
    try:
        result = calculation_service.calculate(
            station_id,
            calculation_date,
            user_id=CLI_USER,
            force_recalculate=force,
            threshold_percent=threshold,
        )
        db.session.commit()
    except PmsError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        return

    click.echo(
        f"PASS {result['calculated_count']} calculated, {result['unchanged_count']} unchanged, "
        f"volume {result['total_volume']}, revenue {result['total_revenue']}"
    )
    for calc in result["calculations"]:
        click.echo(
            f"  pump {calc['pump_id']:<5} {calc['volume_dispensed']:>12} "
            f"{calc['calculation_method']:<15} {calc['state']}"
        )
    for error in result["errors"]:
        click.echo(f"  pump {error['pump_id']:<5} FAIL {error['reason']}")


@calc_group.command('approve')
@click.argument('calculation_id', type=int)
@click.option('--approve/--reject', 'approved', default=True, help='Approve or reject')
@click.option('--notes', default=None, help='Decision notes')
@with_appcontext
def approve_calculation_cli(calculation_id, approved, notes):
    """Record an approval decision on a pending calculation."""
    try:
        calc = calculation_service.approve(calculation_id, approved, user_id=CLI_USER, notes=notes)
        db.session.commit()
    except PmsError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Calculation {calc.id} {calc.approval_state}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pumps_group)
    app.cli.add_command(readings_group)
    app.cli.add_command(prices_group)
    app.cli.add_command(calc_group)
