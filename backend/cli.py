import click
import json
import logging
import os
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash
from .models import db, User, EngineerProfile, Site
from shared.enums import UserRole
from shared.validation import Validator, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SITES_PATH = os.path.join(os.path.dirname(__file__), 'data', 'sites.json')
ADMIN_SPECIALIZATION = 'Administrator'


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables that do not exist yet."""
    logger.info("Starting database initialization")
    db.create_all()
    logger.info("Database initialization completed successfully")
    click.echo('Initialized the database.')


@click.command('create-user')
@click.argument('email')
@click.password_option()
@click.option('--role', type=click.Choice([role.value for role in UserRole]), default=UserRole.ENGINEER.value,
              show_default=True, help='Authoritative role stored on the account')
@click.option('--name', default='', help='Engineer display name')
@with_appcontext
def create_user_command(email, password, role, name):
    """Provision an account with an explicit role."""
    try:
        email = Validator.validate_email(email).lower()
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint='EMAIL')

    if User.query.filter_by(email=email).first():
        raise click.ClickException(f'User {email} already exists')

    user = User(email=email, password_hash=generate_password_hash(password), role=UserRole(role))
    db.session.add(user)
    db.session.flush()
    if user.role == UserRole.ENGINEER:
        db.session.add(EngineerProfile(user_id=user.id, name=name or email, email=email))
    db.session.commit()
    logger.info(f"Created user {user.id} ({email}) with role {role}")
    click.echo(f'Created {role} {email} (id {user.id})')


@click.command('seed-sites')
@click.option('--file', 'path', type=click.Path(exists=True, dir_okay=False), default=DEFAULT_SITES_PATH,
              show_default=True, help='JSON list of site catalog entries')
@with_appcontext
def seed_sites_command(path):
    """Load the site catalog, skipping names that already exist."""
    with open(path, 'r') as f:
        entries = json.load(f)

    added = 0
    for entry in entries:
        try:
            validated = Validator.validate_site_data(entry)
        except ValidationError as e:
            logger.warning(f"Skipping invalid site entry {entry!r}: {e}")
            click.echo(f"  Skipping {entry.get('name', '?')}: {e}")
            continue
        if Site.query.filter_by(name=validated['name']).first():
            logger.debug(f"Site '{validated['name']}' already present")
            continue
        db.session.add(Site(**validated))
        added += 1

    db.session.commit()
    logger.info(f"Seeded {added} sites from {path}")
    click.echo(f'Added {added} site(s).')


def role_from_legacy_signals(user, admin_domain):
    """Infer a role from the legacy signals the old client relied on.

    Only used once, to fill in roles for accounts created before roles were
    stored. Never consulted at request time.
    """
    profile = user.profile
    if profile and ADMIN_SPECIALIZATION in (profile.specializations or []):
        return UserRole.ADMIN
    email = (user.email or '').lower()
    if 'admin' in email or (admin_domain and email.endswith(f'@{admin_domain.lower()}')):
        return UserRole.ADMIN
    return UserRole.ENGINEER


@click.command('migrate-roles')
@click.option('--admin-domain', default='akhanya.co.za', show_default=True,
              help='Email domain whose accounts were treated as administrators')
@click.option('--dry-run', is_flag=True, help='Report the roles without writing them')
@with_appcontext
def migrate_roles_command(admin_domain, dry_run):
    """Assign stored roles to accounts that have none."""
    users = User.query.filter(User.role.is_(None)).order_by(User.id).all()
    if not users:
        click.echo('All users already have a role.')
        return

    for user in users:
        role = role_from_legacy_signals(user, admin_domain)
        click.echo(f'  {user.email}: {role.value}')
        if not dry_run:
            user.role = role

    if dry_run:
        click.echo(f'{len(users)} user(s) would be updated.')
        return
    db.session.commit()
    logger.info(f"Assigned roles to {len(users)} users")
    click.echo(f'Updated {len(users)} user(s).')
