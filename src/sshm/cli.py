"""
sshm command-line interface.

Usage:
    sshm db1
    sshm connect db1
    sshm add --name db1 --host 10.0.0.5 --user root
    sshm list
    sshm remove db1
    sshm regen-keys
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import IO, NoReturn

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sshm.config import SSHMSettings, configure_settings
from sshm.exceptions import NotFoundError, SSHMError, SubprocessExitError
from sshm.logging import setup_logging
from sshm.models import AuthMethod, ServerEntry, has_key_envelope
from sshm.store import CredentialStore
from sshm.terminal import connect as open_session

console = Console()
err_console = Console(stderr=True)


class AliasGroup(click.Group):
    """Group that treats an unknown first argument as ``connect ALIAS``."""

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        if args and self.get_command(ctx, args[0]) is None and not args[0].startswith("-"):
            args = ["connect", *args]
        return super().resolve_command(ctx, args)


def fail(message: str, code: int = 1) -> NoReturn:
    """Print an error and exit."""
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    raise SystemExit(code)


def get_store(ctx: click.Context) -> CredentialStore:
    return ctx.obj["store"]


def get_settings(ctx: click.Context) -> SSHMSettings:
    return ctx.obj["settings"]


@click.group(cls=AliasGroup)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding config.json, credentials.json and keys/ (default: ~/.sshm)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (default: WARNING)",
)
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), help="Write logs to a file")
@click.option("--log-json/--no-log-json", default=None, help="Log as JSON lines")
@click.version_option(package_name="sshm")
@click.pass_context
def main(
    ctx: click.Context,
    config_dir: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool | None,
) -> None:
    """sshm: save SSH servers and log in to them automatically."""
    settings = configure_settings(
        config_dir=config_dir,
        log_level=log_level,
        log_file=log_file,
        log_json=log_json,
    )
    setup_logging(settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["store"] = CredentialStore.from_settings(settings)


# =============================================================================
# Connect Command
# =============================================================================


@main.command()
@click.argument("alias")
@click.pass_context
def connect(ctx: click.Context, alias: str) -> None:
    """Open an interactive SSH session to a saved server.

    Stored passwords are typed in for you when ssh asks for them; without
    one, type it yourself.

    Examples:

        sshm connect db1

        sshm db1
    """
    store = get_store(ctx)
    try:
        server = store.get_server(alias)
    except NotFoundError as e:
        fail(str(e))

    console.print(f"Connecting to [cyan]{escape(server.target)}:{server.port}[/cyan]...")
    try:
        result = asyncio.run(open_session(alias, store=store, settings=get_settings(ctx)))
    except SSHMError as e:
        fail(str(e))

    try:
        result.raise_for_status()
    except SubprocessExitError as e:
        err_console.print(f"[yellow]{escape(str(e))}[/yellow]")
    console.print(f"[dim]Disconnected (exit code {result.exit_code}).[/dim]")
    raise SystemExit(result.exit_code)


# =============================================================================
# Server management
# =============================================================================


@main.command("list")
@click.pass_context
def list_servers(ctx: click.Context) -> None:
    """List saved servers."""
    servers = get_store(ctx).list_servers()
    if not servers:
        console.print("[yellow]No servers saved.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Alias")
    table.add_column("Target")
    table.add_column("Port", justify="right")
    table.add_column("Auth")

    for server in servers:
        auth = "SSH key" if server.uses_key else "Password"
        table.add_row(escape(server.name), escape(server.target), str(server.port), auth)

    console.print(table)


@main.command()
@click.option("--name", required=True, metavar="ALIAS", help="Alias for the server")
@click.option("--host", required=True, help="Hostname or IP address")
@click.option("--user", required=True, help="SSH user")
@click.option("--port", type=int, default=22, show_default=True, help="SSH port")
@click.option(
    "--auth",
    type=click.Choice([m.value for m in AuthMethod]),
    default=AuthMethod.PASSWORD.value,
    show_default=True,
    help="Authentication method",
)
@click.option("--key-path", help="Existing private key file to use (key auth)")
@click.option(
    "--key-content-file",
    type=click.File("r"),
    help="File whose private key content is stored and managed by sshm (key auth)",
)
@click.option("--password-stdin", is_flag=True, help="Read the password from stdin")
@click.pass_context
def add(
    ctx: click.Context,
    name: str,
    host: str,
    user: str,
    port: int,
    auth: str,
    key_path: str | None,
    key_content_file: IO[str] | None,
    password_stdin: bool,
) -> None:
    """Save a server and its credential.

    An existing server with the same alias is replaced.

    Examples:

        sshm add --name db1 --host 10.0.0.5 --user root

        sshm add --name web --host web.lan --user deploy --auth key --key-path ~/.ssh/id_ed25519

        sshm add --name ci --host ci.lan --user ci --auth key --key-content-file ./ci_key
    """
    store = get_store(ctx)
    try:
        entry = ServerEntry(name=name, host=host, user=user, port=port, auth_method=AuthMethod(auth))
    except ValidationError as e:
        fail(f"Invalid server: {e.errors()[0]['msg']}")

    password: str | None = None
    if entry.uses_key:
        if key_content_file is not None:
            content = key_content_file.read().strip()
            if not content or not has_key_envelope(content):
                fail("Key content is not a valid private key.")
            store.set_key_content(entry.name, content)
            try:
                status = store.write_key_file(entry.name, content)
            except SSHMError as e:
                fail(str(e))
            if status.warning:
                err_console.print(f"[yellow]Warning:[/yellow] {escape(status.warning)}")
            entry = entry.model_copy(update={"key_path": str(status.path)})
        elif key_path:
            if not Path(key_path).expanduser().is_file():
                fail(f"Key file not found: {key_path}")
            entry = entry.model_copy(update={"key_path": key_path})
        else:
            fail("Key auth needs --key-path or --key-content-file.")
    elif password_stdin:
        password = click.get_text_stream("stdin").readline().rstrip("\r\n")
    else:
        password = click.prompt(f"Password for {entry.target}", hide_input=True, default="", show_default=False)

    replaced = store.add_server(entry)
    if password:
        store.set_password(entry.name, password)
    elif not entry.uses_key:
        store.delete_credential(entry.name)

    if replaced:
        console.print(f"[yellow]Replaced existing server[/yellow] '{escape(entry.name)}'")
    console.print(f"[green]✓[/green] Saved server '{escape(entry.name)}'")


@main.command()
@click.argument("alias")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def remove(ctx: click.Context, alias: str, yes: bool) -> None:
    """Remove a saved server, its credential and its managed key file."""
    store = get_store(ctx)
    try:
        store.get_server(alias)
    except NotFoundError as e:
        fail(str(e))

    if not yes:
        click.confirm(f"Remove '{alias}'?", abort=True)

    store.remove_server(alias)
    console.print(f"[green]✓[/green] Removed server '{escape(alias)}'")


# =============================================================================
# Key files
# =============================================================================


@main.command("regen-keys")
@click.argument("alias", required=False)
@click.pass_context
def regen_keys(ctx: click.Context, alias: str | None) -> None:
    """Rebuild key files from stored key content.

    With ALIAS only that server's key file is rebuilt; otherwise every
    key-based server is processed and failures are reported per server.
    """
    store = get_store(ctx)

    if alias:
        try:
            path = store.regenerate_key_file(alias)
        except SSHMError as e:
            fail(str(e))
        console.print(f"[green]✓[/green] Regenerated {escape(str(path))}")
        return

    results = store.regenerate_all_key_files()
    if not results:
        console.print("[yellow]No servers use SSH keys.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Alias")
    table.add_column("Status", width=8)
    table.add_column("Detail")
    for result in results:
        status = "[green]ok[/green]" if result.ok else "[red]failed[/red]"
        table.add_row(escape(result.alias), status, escape(result.detail))
    console.print(table)

    if not all(result.ok for result in results):
        raise SystemExit(1)


# =============================================================================
# Entry Point
# =============================================================================


if __name__ == "__main__":
    main()
