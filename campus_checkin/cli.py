# cli.py
"""
Flask CLI commands for event registration and check-in administration.
"""

import click
from flask.cli import with_appcontext

from campus_checkin.extensions import db
from campus_checkin.services.errors import CheckInError


@click.command("init-db")
@with_appcontext
def init_database():
    """Create the profiles, events, registration and scanner session tables."""
    try:
        db.create_all()
        click.echo("Database tables created.")
    except Exception as e:
        click.echo(f"Database initialization failed: {str(e)}", err=True)
        raise


@click.command("register-student")
@click.argument("event_id")
@click.argument("student_id")
@with_appcontext
def register_student(event_id, student_id):
    """Register STUDENT_ID for EVENT_ID."""
    from campus_checkin.services.registration_ledger import RegistrationLedger

    try:
        registration = RegistrationLedger.create_registration(event_id, student_id)
    except CheckInError as e:
        raise click.ClickException(f"{e.message} ({e.error_code})")

    click.echo(f"Registered {student_id} for {event_id} (registration {registration.id}).")


@click.command("issue-ticket")
@click.argument("event_id")
@click.argument("student_id")
@click.option("--output", type=click.Path(dir_okay=False, writable=True),
              help="Write the QR code PNG to this file")
@with_appcontext
def issue_ticket(event_id, student_id, output):
    """Print the ticket credential for a registration, optionally saving its QR code."""
    from campus_checkin.services.registration_ledger import RegistrationLedger
    from campus_checkin.services.ticket_service import TicketEncoder

    try:
        registration = RegistrationLedger.get_registration(event_id, student_id)
    except CheckInError as e:
        raise click.ClickException(f"{e.message} ({e.error_code})")

    display_name = registration.student.full_name if registration.student else None
    credential = TicketEncoder.encode(registration, display_name=display_name)
    click.echo(credential)

    if output:
        with open(output, 'wb') as f:
            f.write(TicketEncoder.render_png(credential))
        click.echo(f"QR code written to {output}")


@click.command("attendance-summary")
@click.argument("event_id")
@with_appcontext
def attendance_summary(event_id):
    """Show registered vs attended counts for EVENT_ID."""
    from campus_checkin.services.registration_ledger import RegistrationLedger

    try:
        summary = RegistrationLedger.get_attendance_summary(event_id)
    except CheckInError as e:
        raise click.ClickException(f"{e.message} ({e.error_code})")

    click.echo(f"Event {event_id}:")
    click.echo(f"   Registered (not yet checked in): {summary['registered']}")
    click.echo(f"   Attended: {summary['attended']}")
    click.echo(f"   Total: {summary['total']}")
    click.echo(f"   Attendance rate: {summary['attendance_rate']}%")


@click.command("prune-scanner-sessions")
@click.option("--days", default=7, show_default=True, type=click.IntRange(min=0),
              help="Delete scanner sessions idle for this many days")
@with_appcontext
def prune_scanner_sessions(days):
    """Remove stale scanner loop state."""
    from campus_checkin.services.scanner_state import prune_scanner_sessions as prune

    try:
        deleted = prune(older_than_days=days)
    except CheckInError as e:
        raise click.ClickException(f"{e.message} ({e.error_code})")

    click.echo(f"Deleted {deleted} scanner sessions idle for more than {days} days.")


def register_cli_commands(app):
    """
    Register all CLI commands with the Flask application.

    Args:
        app: Flask application instance
    """
    app.cli.add_command(init_database)
    app.cli.add_command(register_student)
    app.cli.add_command(issue_ticket)
    app.cli.add_command(attendance_summary)
    app.cli.add_command(prune_scanner_sessions)


# flask init-db
# flask register-student <event_id> <student_id>
# flask issue-ticket <event_id> <student_id> --output ticket.png
# flask attendance-summary <event_id>
# flask prune-scanner-sessions --days 7
