"""Offline mode CLI commands."""
import click

from offlinekit.core.constants import QUEUE_KINDS
from offlinekit.core.errors import OfflineKitError
from offlinekit.offline.connectivity import is_connected

from .context import CliContext, offline_store, pass_cli, run_with_store
from .output import print_error, print_json, print_success, table


@click.group()
def offline():
    """Offline queue commands."""
    pass


@offline.command()
@pass_cli
def status(ctx: CliContext):
    """Show offline queue status."""
    store = offline_store(ctx)
    sync_status = store.status()
    sync_status["online"] = is_connected(
        ctx.config.probe_host, ctx.config.probe_port, ctx.config.probe_timeout
    )
    print_json(sync_status)


@offline.command('queue')
@click.option('--kind', '-k', type=click.Choice(QUEUE_KINDS), help='Only this queue kind')
@click.option('--limit', '-n', default=20, help='Number of entries to show')
@pass_cli
def show_queue(ctx: CliContext, kind: str | None, limit: int):
    """List pending entries in enqueue order."""
    store = offline_store(ctx)
    kinds = [kind] if kind else list(QUEUE_KINDS)

    rows = []
    for k in kinds:
        for entry in store.queue.list_all(ctx.user, k):
            rows.append([entry.sequence, k, entry.operation.value,
                         entry.entity_type.value, entry.entity_id, entry.enqueued_at])

    if not rows:
        click.echo("Queue is empty")
        return

    rows.sort(key=lambda row: row[0])
    click.echo(f"Showing {min(limit, len(rows))} of {len(rows)} queued entries:\n")
    table(["seq", "kind", "op", "entity", "id", "enqueued_at"], rows[:limit])


@offline.command('sync')
@click.option('--force', is_flag=True, help='Attempt sync even if the probe says offline')
@pass_cli
def do_sync(ctx: CliContext, force: bool):
    """Replay the offline queue against the remote store."""
    connected = is_connected(ctx.config.probe_host, ctx.config.probe_port, ctx.config.probe_timeout)
    if not connected and not force:
        print_error("Not connected. Use --force to attempt anyway.")
        raise SystemExit(1)

    try:
        report = run_with_store(ctx, lambda store: store.sync())
    except OfflineKitError as e:
        print_error(f"Sync failed: {e}")
        raise SystemExit(1)

    if report.failed:
        print_error(f"{report.failed} of {report.attempted} entries failed to replay")
    else:
        print_success(f"Synced {report.succeeded} entries")
    print_json(report.to_dict())


@offline.command()
@pass_cli
def merkle(ctx: CliContext):
    """Show local Merkle root of queued entries."""
    store = offline_store(ctx)
    merkle_root = store.queue.merkle_root(ctx.user)

    if merkle_root:
        print_json({
            "local_merkle_root": merkle_root,
            "pending_by_kind": store.pending_counts(),
        })
    else:
        click.echo("Queue is empty, no Merkle root")


@offline.command('auto-save')
@click.argument('state', type=click.Choice(["on", "off"]))
@pass_cli
def auto_save(ctx: CliContext, state: str):
    """Keep a local copy of every saved record."""
    store = offline_store(ctx)
    settings = store.set_auto_save(state == "on")
    print_json(settings)


@offline.command('sign-out')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@pass_cli
def sign_out(ctx: CliContext, yes: bool):
    """Purge every queued entry and setting of the user."""
    store = offline_store(ctx)
    pending = sum(store.pending_counts().values())

    if pending and not yes and not click.confirm(f"Discard {pending} queued entries?"):
        click.echo("Aborted")
        return

    removed = store.on_sign_out()
    print_success(f"Signed out, removed {removed} queue files")


@offline.command()
@pass_cli
def connected(ctx: CliContext):
    """Check if the remote store is reachable."""
    online = is_connected(ctx.config.probe_host, ctx.config.probe_port, ctx.config.probe_timeout)
    print_json({
        "connected": online,
        "status": "online" if online else "offline",
        "host": ctx.config.probe_host,
        "port": ctx.config.probe_port,
    })
