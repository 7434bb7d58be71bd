# campus_vote/cli.py
# Operator commands: `flask --app campus_vote:create_app <command>`

import click

from campus_vote import db
from campus_vote.audit.audit_logger import get_audit_logger
from campus_vote.authentication.identity import identity_service
from campus_vote.database.models import Role
from campus_vote.errors import CampusVoteError


def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create all tables (development; use `flask db upgrade` elsewhere)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command('create-user')
    @click.argument('email')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--full-name', default='')
    @click.option('--student-id', default=None)
    def create_user(email, password, full_name, student_id):
        """Register an account with the default student role."""
        try:
            account = identity_service.register({
                'email': email,
                'password': password,
                'full_name': full_name,
                'student_id': student_id,
            })
        except CampusVoteError as e:
            raise click.ClickException(e.message)
        click.echo(f"User {account.email} created with id {account.id}.")

    @app.cli.command('grant-admin')
    @click.argument('email')
    def grant_admin(email):
        """Grant the admin role; the only way an admin is ever created."""
        try:
            granted = identity_service.grant_role(email, Role.ADMIN)
        except CampusVoteError as e:
            raise click.ClickException(e.message)
        click.echo(f"{email} is now an admin." if granted else f"{email} already is an admin.")

    @app.cli.command('revoke-admin')
    @click.argument('email')
    def revoke_admin(email):
        try:
            revoked = identity_service.revoke_role(email, Role.ADMIN)
        except CampusVoteError as e:
            raise click.ClickException(e.message)
        click.echo(f"Admin role revoked from {email}." if revoked else f"{email} was not an admin.")

    @app.cli.command('verify-audit-log')
    def verify_audit_log():
        """Check the audit trail's hash chain and signatures."""
        # An ephemeral key cannot verify entries written by another process
        if not app.config.get('AUDIT_SIGNING_KEY'):
            raise click.ClickException("AUDIT_SIGNING_KEY is required to verify the audit log.")
        if get_audit_logger().verify_integrity():
            click.echo("Audit log integrity verified.")
        else:
            raise click.ClickException("Audit log integrity check FAILED.")
