"""
Command-line front end for pwdvault.

Usage:
    pwdvault init                   # Create a new vault
    pwdvault list                   # List records
    pwdvault show UUID              # Show one record
    pwdvault add-credential NAME    # Add a login
    pwdvault add-note NAME          # Add a secure note
    pwdvault remove UUID            # Delete a record
    pwdvault passwd                 # Change the master passphrase
    pwdvault generate               # Print a random password
    pwdvault import-csv / export-csv / import-xml / export-xml FILE
"""

import os
import sys
import logging
from contextlib import contextmanager

import click

from . import config, vault_manager
from .config import VaultConfig
from .exceptions import VaultError
from .generator import check_strength, generate_password
from .importers import export_csv, export_xml_wallet, import_csv, import_xml_wallet
from .models import FieldType, Record, RecordType
from .session import Session

logger = logging.getLogger(__name__)

HIDDEN_TEXT = "••••••••"


def _read_passphrase(prompt: str = "Master passphrase", confirm: bool = False) -> str:
    passphrase = os.environ.get(config.ENV_PASSPHRASE)
    if passphrase:
        return passphrase
    return click.prompt(prompt, hide_input=True, confirmation_prompt=confirm)


@contextmanager
def _errors():
    """Report vault and file system errors as CLI failures."""
    try:
        yield
    except (VaultError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        raise click.ClickException(str(e)) from e


@contextmanager
def _unlocked(ctx: click.Context, save: bool = False):
    settings = ctx.obj
    with _errors():
        session = Session(settings['config'])
        session.unlock(_read_passphrase())
        with session:
            vault_manager.save_recent_vault_path(session.container_path, settings['config_dir'])
            yield session
            if save:
                session.save()


def _find(session: Session, prefix: str) -> Record:
    """Resolve a full uuid or a unique uuid prefix."""
    record = session.store.get(prefix)
    if record is not None:
        return record
    matches = session.store.query(lambda r: r.uuid.startswith(prefix)).to_list()
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise click.ClickException(f"No record matches {prefix!r}")
    raise click.ClickException(f"{prefix!r} matches {len(matches)} records; use more characters")


@click.group()
@click.option('--vault', 'vault_path', type=click.Path(dir_okay=False), envvar=config.ENV_CONTAINER_PATH,
              help="Container file (default: ~/.pwdvault/vault.pwdv)")
@click.option('--iterations', type=int, envvar=config.ENV_ITERATIONS, help="Argon2id time cost")
@click.option('--memory-cost', type=int, help="Argon2id memory cost in KiB")
@click.option('--parallelism', type=int, help="Argon2id lanes")
@click.option('--config-dir', type=click.Path(file_okay=False), hidden=True)
@click.option('-v', '--verbose', is_flag=True, help="Enable debug logging")
@click.version_option(config.APP_VERSION, prog_name=config.APP_NAME)
@click.pass_context
def cli(ctx, vault_path, iterations, memory_cost, parallelism, config_dir, verbose):
    """pwdvault: an encrypted password vault."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=config.LOG_FORMAT)
    with _errors():
        vault_config = VaultConfig.from_mapping({
            k: v for k, v in {
                'container_path': vault_path,
                'iterations': iterations,
                'memory_cost': memory_cost,
                'parallelism': parallelism,
            }.items() if v is not None
        })
    ctx.obj = {'config': vault_config, 'config_dir': config_dir}


@cli.command()
@click.option('--force', is_flag=True, help="Overwrite an existing container")
@click.pass_context
def init(ctx, force):
    """Create a new, empty vault."""
    settings = ctx.obj
    passphrase = _read_passphrase("New master passphrase", confirm=True)
    strong, message = check_strength(passphrase)
    if not strong:
        click.echo(f"Warning: {message}", err=True)
    with _errors():
        with Session(settings['config']).create(passphrase, overwrite=force) as session:
            vault_manager.save_recent_vault_path(session.container_path, settings['config_dir'])
            click.echo(f"Created vault {session.container_path}")


@cli.command('list')
@click.option('--type', 'record_type', type=click.Choice([t.name for t in RecordType], case_sensitive=False))
@click.option('--search', help="Match name, note and unmasked field values")
@click.option('--favorites', is_flag=True, help="Only favorite records")
@click.pass_context
def list_records(ctx, record_type, search, favorites):
    """List records."""
    with _unlocked(ctx) as session:
        query = session.store.search(search) if search else session.store.query()
        for record in query:
            if record_type and record.type.name != record_type.upper():
                continue
            if favorites and not record.favorite:
                continue
            star = "*" if record.favorite else " "
            click.echo(f"{record.uuid}  {star} {record.type.name:<12} {record.name}")


@cli.command()
@click.argument('record_id')
@click.option('--reveal', is_flag=True, help="Show masked values")
@click.pass_context
def show(ctx, record_id, reveal):
    """Show a record by uuid or uuid prefix."""
    with _unlocked(ctx) as session:
        record = _find(session, record_id)
        click.echo(f"{record.name} ({record.type.name})")
        click.echo(f"uuid:     {record.uuid}")
        click.echo(f"modified: {record.modified.isoformat(timespec='seconds')}")
        for f in record.fields:
            value = HIDDEN_TEXT if f.masked and not reveal and f.value else f.value
            click.echo(f"  {f.name}: {value}")
        if record.note:
            click.echo(record.note)


@cli.command('add-note')
@click.argument('name')
@click.option('--text', prompt=True, help="Note text")
@click.option('--favorite', is_flag=True)
@click.pass_context
def add_note(ctx, name, text, favorite):
    """Add a secure note."""
    with _unlocked(ctx, save=True) as session:
        with _errors():
            record = session.store.add_record(Record.new(RecordType.NOTE, name, note=text, favorite=favorite))
        click.echo(record.uuid)


@cli.command('add-credential')
@click.argument('name')
@click.option('--login', default="", help="User name")
@click.option('--password', 'password', help="Password (prompted if omitted)")
@click.option('--generate', is_flag=True, help="Generate a random password")
@click.option('--url', default="")
@click.option('--note', default="")
@click.option('--favorite', is_flag=True)
@click.pass_context
def add_credential(ctx, name, login, password, generate, url, note, favorite):
    """Add a login credential."""
    if generate:
        password = generate_password()
    with _unlocked(ctx, save=True) as session:
        if password is None:
            password = click.prompt("Password", hide_input=True)
        with _errors():
            record = (Record.new(RecordType.CREDENTIAL, name, note=note, favorite=favorite)
                      .with_field('Login', login)
                      .with_field('Password', password, FieldType.HIDDEN)
                      .with_field('URL', url, FieldType.LINK))
            session.store.add_record(record)
        click.echo(record.uuid)


@cli.command()
@click.argument('record_id')
@click.pass_context
def remove(ctx, record_id):
    """Delete a record."""
    with _unlocked(ctx, save=True) as session:
        record = _find(session, record_id)
        with _errors():
            session.store.remove_record(record.uuid)
        click.echo(f"Removed {record.name}")


@cli.command()
@click.pass_context
def passwd(ctx):
    """Change the master passphrase."""
    with _unlocked(ctx) as session:
        old = _read_passphrase()
        new = click.prompt("New master passphrase", hide_input=True, confirmation_prompt=True)
        strong, message = check_strength(new)
        if not strong:
            click.echo(f"Warning: {message}", err=True)
        with _errors():
            session.change_passphrase(old, new)
        click.echo("Passphrase changed")


@cli.command()
@click.option('--length', default=config.PASSWORD_GENERATOR_DEFAULT_LENGTH, show_default=True)
@click.option('--no-symbols', is_flag=True)
@click.option('--exclude-ambiguous', is_flag=True)
def generate(length, no_symbols, exclude_ambiguous):
    """Print a random password."""
    with _errors():
        click.echo(generate_password(length, symbols=not no_symbols, exclude_ambiguous=exclude_ambiguous))


@cli.command('import-csv')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_csv_command(ctx, path):
    """Import credentials from a CSV file."""
    with _errors():
        records = import_csv(path)
    with _unlocked(ctx, save=True) as session:
        with _errors():
            session.store.add_records(records)
    click.echo(f"Imported {len(records)} records")


@cli.command('export-csv')
@click.argument('path', type=click.Path(dir_okay=False))
@click.pass_context
def export_csv_command(ctx, path):
    """Export records to an UNENCRYPTED CSV file."""
    with _unlocked(ctx) as session:
        with _errors():
            count = export_csv(path, session.store.records())
    click.echo(f"Exported {count} records")


@cli.command('import-xml')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_xml_command(ctx, path):
    """Import records from a legacy XML wallet."""
    with _errors():
        records = import_xml_wallet(path)
    with _unlocked(ctx, save=True) as session:
        with _errors():
            session.store.add_records(records)
    click.echo(f"Imported {len(records)} records")


@cli.command('export-xml')
@click.argument('path', type=click.Path(dir_okay=False))
@click.pass_context
def export_xml_command(ctx, path):
    """Export records to an UNENCRYPTED XML wallet."""
    with _unlocked(ctx) as session:
        with _errors():
            count = export_xml_wallet(path, session.store.records())
    click.echo(f"Exported {count} records")


def main():
    """Main entry point."""
    return cli(prog_name=config.APP_NAME)


if __name__ == "__main__":
    sys.exit(main())
