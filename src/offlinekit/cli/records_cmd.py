"""Record commands: save, list, update, delete."""
import json

import click

from offlinekit.core.errors import OfflineKitError, ValidationFailed
from offlinekit.core.schemas import EntityType

from .context import CliContext, pass_cli, run_with_store
from .output import print_error, print_json, print_success, table

ENTITY_CHOICE = click.Choice([et.value for et in EntityType])


def _parse_json(value: str, what: str) -> dict:
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON for {what}: {e}")
    if not isinstance(data, dict):
        raise click.BadParameter(f"{what} must be a JSON object")
    return data


def _parse_filter(pairs: tuple[str, ...]) -> dict:
    filter = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"Filter must be field=value, got {pair}")
        field, value = pair.split("=", 1)
        filter[field] = value
    return filter


@click.group()
def records():
    """Create, read, update and delete records."""
    pass


@records.command()
@click.argument('entity', type=ENTITY_CHOICE)
@click.option('--data', '-d', required=True, help='Record body as a JSON object')
@pass_cli
def save(ctx: CliContext, entity: str, data: str):
    """Save a record (queued locally when the store is unreachable)."""
    payload = _parse_json(data, "--data")
    try:
        record_id = run_with_store(ctx, lambda store: store.save(EntityType(entity), payload))
        print_success(f"Saved {entity} {record_id}")
    except ValidationFailed as e:
        print_error(f"Rejected: {e}")
        raise SystemExit(2)
    except OfflineKitError as e:
        print_error(f"Save failed: {e}")
        raise SystemExit(1)


@records.command('list')
@click.argument('entity', type=ENTITY_CHOICE)
@click.option('--where', '-w', multiple=True, help='field=value filter, repeatable')
@click.option('--json', 'as_json', is_flag=True, help='Print records as JSON')
@pass_cli
def list_records(ctx: CliContext, entity: str, where: tuple[str, ...], as_json: bool):
    """List records, remote first, then pending local ones."""
    filter = _parse_filter(where)
    try:
        found = run_with_store(ctx, lambda store: store.list(EntityType(entity), filter or None))
    except OfflineKitError as e:
        print_error(f"List failed: {e}")
        raise SystemExit(1)

    if as_json:
        print_json([r.to_dict() for r in found])
        return

    if not found:
        click.echo(f"No {entity} records")
        return

    table(
        ["id", "origin", "created_at", "payload"],
        [[r.id, r.origin, r.created_at, json.dumps(r.payload, sort_keys=True)] for r in found],
    )


@records.command()
@click.argument('entity', type=ENTITY_CHOICE)
@click.argument('record_id')
@click.option('--data', '-d', required=True, help='Fields to change as a JSON object')
@pass_cli
def update(ctx: CliContext, entity: str, record_id: str, data: str):
    """Update fields of a record."""
    diff = _parse_json(data, "--data")
    try:
        run_with_store(ctx, lambda store: store.update(EntityType(entity), record_id, diff))
        print_success(f"Updated {entity} {record_id}")
    except ValidationFailed as e:
        print_error(f"Rejected: {e}")
        raise SystemExit(2)
    except OfflineKitError as e:
        print_error(f"Update failed: {e}")
        raise SystemExit(1)


@records.command()
@click.argument('entity', type=ENTITY_CHOICE)
@click.argument('record_id')
@pass_cli
def delete(ctx: CliContext, entity: str, record_id: str):
    """Delete a record."""
    try:
        run_with_store(ctx, lambda store: store.delete(EntityType(entity), record_id))
        print_success(f"Deleted {entity} {record_id}")
    except OfflineKitError as e:
        print_error(f"Delete failed: {e}")
        raise SystemExit(1)
