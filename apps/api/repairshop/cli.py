"""CLI tools for repair shop administration."""

import click

from repairshop.db.enums import Role
from repairshop.db.models import User
from repairshop.db.session import SessionLocal
from repairshop.services.order_service import build_engine
from repairshop.utils.normalization import normalize_email, normalize_name


@click.group()
def cli():
    """Repair shop CLI tools."""
    pass


@cli.command()
@click.option("--email", required=True, help="Staff email address")
@click.option("--name", "display_name", required=True, help="Display name")
@click.option(
    "--role",
    required=True,
    type=click.Choice([r.value for r in Role]),
    help="Staff role (drives notification routing)",
)
def create_user(email: str, display_name: str, role: str):
    """
    Create a staff member.

    Example:
        python -m repairshop.cli create-user --email tech@shop.mx --name "Ana" --role technician
    """
    db = SessionLocal()
    try:
        email = normalize_email(email)
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            click.echo(f"❌ User with email '{email}' already exists")
            return

        user = User(email=email, display_name=normalize_name(display_name), role=role)
        db.add(user)
        db.commit()

        click.echo(f"✓ Created user: {user.display_name}")
        click.echo(f"  ID: {user.id}")
        click.echo(f"  Role: {role}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
def run_alert_scan():
    """
    Run the stale-order alert sweep once.

    Same job as POST /internal/scheduled/order-alerts, for local cron.
    """
    with SessionLocal() as db:
        result = build_engine(db).scanner.run()

    click.echo(f"✓ Red alerts: {result.red_alerts}")
    click.echo(f"✓ Yellow alerts: {result.yellow_alerts}")
    click.echo(f"  Notifications created: {result.notifications_created}")
    if result.errors:
        click.echo(f"❌ Errors: {result.errors}")


if __name__ == "__main__":
    cli()
