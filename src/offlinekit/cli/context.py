"""Per-invocation state shared by every command."""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import click

from offlinekit.config.settings import StoreConfig
from offlinekit.remote.http import HttpRemoteStore
from offlinekit.store import OfflineStore


@dataclass
class CliContext:
    config: StoreConfig
    user: str | None = None

    def require_user(self) -> str:
        if not self.user:
            raise click.UsageError("No identity given. Use --user or OFFLINEKIT_USER.")
        return self.user


pass_cli = click.make_pass_decorator(CliContext)


def run_with_store(ctx: CliContext, action: Callable[[OfflineStore], Awaitable]):
    """Open the remote store, sign the user in, run action(store)."""
    user = ctx.require_user()

    async def runner():
        async with HttpRemoteStore(
            ctx.config.remote_url,
            auth_token=ctx.config.auth_token,
            timeout=ctx.config.timeout,
        ) as remote:
            store = OfflineStore(remote, ctx.config.data_dir)
            store.on_sign_in(user)
            return await action(store)

    return asyncio.run(runner())


def offline_store(ctx: CliContext) -> OfflineStore:
    """Store for commands that only touch local state."""
    store = OfflineStore(
        HttpRemoteStore(ctx.config.remote_url, ctx.config.auth_token, ctx.config.timeout),
        ctx.config.data_dir,
    )
    store.on_sign_in(ctx.require_user())
    return store
