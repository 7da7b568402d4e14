# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/tailorpos/cli.py
# Commands Legend (run from the backend directory):
# - flask --app tailorpos system init [--branch "Main Store"] [--admin-password "..."]
#   Idempotent bootstrap: creates tables, a default branch and the admin user.
# - flask --app tailorpos system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - flask --app tailorpos users list
# - flask --app tailorpos users create --username cashier1 --role cashier
#   Create an operator (prompts for the password).
# - flask --app tailorpos branches list
# - flask --app tailorpos reports summary --start 2026-01-01 --end 2026-01-31
#   Sales / cost / profit for a date range (or --period today|week|month|year|all).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, User, USER_ROLES
from .services import reporting_service
from .services.auth_service import create_user
from .validation import ValidationError

DEFAULT_ADMIN_PASSWORD = "Password123!"


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--branch', 'branch_name', default='Main Store', help='Default branch name')
@click.option('--admin-username', default='admin', help='Admin username')
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, help='Admin password')
@with_appcontext
def init_system(branch_name, admin_username, admin_password):
    """
    Create tables, the default branch and the admin operator.

    SECURITY: Change the default admin password immediately in production!
    """
    click.echo("START Initializing TailorPOS...")
    db.create_all()

    branch = db.session.query(Branch).order_by(Branch.id.asc()).first()
    if branch is None:
        branch = Branch(name=branch_name, type="store")
        db.session.add(branch)
        db.session.commit()
        click.echo(f"PASS Created default branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    admin = db.session.query(User).filter_by(username=admin_username).first()
    if admin is None:
        try:
            admin = create_user(admin_username, admin_password, role="admin", full_name="Administrator")
        except ValidationError as e:
            raise click.ClickException(str(e))
        click.echo(f"PASS Created admin user: {admin.username}")
    else:
        click.echo(f"PASS Admin user already exists: {admin.username}")

    click.echo("DONE TailorPOS initialized.")


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

    click.echo("PASS Database reset complete. Run 'flask system init' to initialize.")


@click.group('users')
def users_group():
    """Operator account commands."""


@users_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated users')
@with_appcontext
def list_users(include_inactive):
    """List operators with their role and branch."""
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    users = query.order_by(User.username.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Branch':<20} {'Active'}")
    click.echo("=" * 70)
    for user in users:
        branch = user.branch.name if user.branch else "all"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<10} {branch:<20} {active_str}")
    click.echo("=" * 70 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(USER_ROLES), default='cashier', show_default=True)
@click.option('--full-name', default=None)
@click.option('--branch-id', type=int, default=None)
@with_appcontext
def create_user_cmd(username, password, role, full_name, branch_id):
    """Create an operator account."""
    try:
        user = create_user(username, password, role=role, full_name=full_name, branch_id=branch_id)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@click.group('branches')
def branches_group():
    """Branch inspection commands."""


@branches_group.command('list')
@with_appcontext
def list_branches():
    branches = db.session.query(Branch).order_by(Branch.name.asc()).all()
    if not branches:
        click.echo("No branches found.")
        return
    for branch in branches:
        click.echo(f"{branch.id:<5} {branch.name:<30} {branch.type:<10} {branch.location or ''}")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('summary')
@click.option('--start', default=None, help='YYYY-MM-DD (inclusive)')
@click.option('--end', default=None, help='YYYY-MM-DD (inclusive)')
@click.option('--period', type=click.Choice(reporting_service.REPORT_PERIODS), default=None)
@with_appcontext
def report_summary(start, end, period):
    """Print sales, cost and profit for a date range."""
    try:
        if period or not (start or end):
            result = reporting_service.report_for_period(period or "today")
        else:
            result = reporting_service.report(start, end)
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"Range:          {result['start']} .. {result['end']}")
    click.echo(f"Total sales:    {_money(result['total_sales_cents'])}")
    click.echo(f"Total cost:     {_money(result['total_cost_cents'])}")
    click.echo(f"Net profit:     {_money(result['net_profit_cents'])}")
    click.echo(f"Profit margin:  {result['profit_margin_pct']:.1f}%")
    click.echo(f"Orders:         {result['order_count']}")
    click.echo(f"Avg order:      {_money(result['avg_order_value_cents'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(reports_group)
