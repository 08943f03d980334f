# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/bms_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the settings row and a default manager.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Employees:
# - python -m flask employees list [--all]
#   List employees with role and active status.
# - python -m flask employees create --code EMP002 --name "Jane Doe" --role Cashier --pin 123456
#   Create an employee (prompts if options are omitted).
#
# Products:
# - python -m flask products low-stock
#   List active products at or below their minimum stock level.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import PosError
from .models import Employee
from .services import employee_service, products_service
from .services.settings_service import get_settings_row
from .services.pin_service import hash_pin
from .validation import VALID_ROLES

DEFAULT_MANAGER_CODE = "MGR001"
DEFAULT_MANAGER_PIN = "123456"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize BMS POS: schema, settings row and a default manager.

    Creates (if missing):
    - All tables
    - SystemSettings row with the default returns policy
    - Manager MGR001 with PIN 123456

    SECURITY: Change the default manager PIN immediately in production!
    """
    click.echo("START Initializing BMS POS...")

    db.create_all()
    click.echo("PASS Schema ready")

    settings = get_settings_row()
    click.echo(f"PASS Settings row ready (ID: {settings.id})")

    manager = db.session.query(Employee).filter_by(role="Manager").first()
    if manager is None:
        manager = Employee(
            employee_code=DEFAULT_MANAGER_CODE,
            name="Default Manager",
            role="Manager",
            pin_hash=hash_pin(DEFAULT_MANAGER_PIN),
            is_active=True,
        )
        db.session.add(manager)
        db.session.commit()
        click.echo(f"PASS Created default manager {DEFAULT_MANAGER_CODE} (PIN {DEFAULT_MANAGER_PIN})")
        click.echo("WARN Change the default manager PIN before going live")
    else:
        click.echo(f"PASS Using existing manager: {manager.name} ({manager.employee_code})")

    click.echo("DONE BMS POS initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('employees')
def employees_group():
    """Employee inspection and bootstrap commands."""


@employees_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive employees')
@with_appcontext
def list_employees(include_inactive):
    """List employees with role and active status."""
    employees = employee_service.list_employees(active_only=not include_inactive)
    if not employees:
        click.echo("No employees found")
        return
    for e in employees:
        status = "active" if e.is_active else "inactive"
        click.echo(f"{e.id:>4}  {e.employee_code:<10}  {e.name:<30}  {e.role:<10}  {status}")


@employees_group.command('create')
@click.option('--code', prompt=True, help='Employee ID used at login (max 10 chars)')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', prompt=True, type=click.Choice(VALID_ROLES), help='Role')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='6-digit PIN')
@with_appcontext
def create_employee(code, name, role, pin):
    """Create an employee with a bcrypt-hashed PIN."""
    try:
        employee = employee_service.create_employee({
            "employee_code": code,
            "name": name,
            "role": role,
            "pin": pin,
        })
    except PosError as e:
        db.session.rollback()
        raise click.ClickException(e.message)

    click.echo(f"PASS Created employee {employee.employee_code} ({employee.role}), ID: {employee.id}")


@click.group('products')
def products_group():
    """Product inspection commands."""


@products_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products at or below their minimum stock level."""
    products = products_service.list_products(active_only=True, low_stock_only=True)
    if not products:
        click.echo("PASS No products are low on stock")
        return
    for p in products:
        click.echo(
            f"WARN {p.barcode:<15}  {p.name:<40}  stock {p.stock_quantity:>5}  (min {p.min_stock_level})"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(employees_group)
    app.cli.add_command(products_group)
