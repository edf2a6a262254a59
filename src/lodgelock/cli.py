"""CLI entry point for Lodgelock."""

import asyncio
import json
import os
from pathlib import Path

import click

from lodgelock import __version__
from lodgelock.config import Config, load_config
from lodgelock.errors import PairingCodeError, PairingError, RelayError
from lodgelock.formatting import format_request, format_time_ago
from lodgelock.logging import setup_logging
from lodgelock.relay.firebase import FirebaseRelayStore
from lodgelock.room_store import JsonRoomStore

DEFAULT_SECRET_FILE = "~/.config/lodgelock/signer.json"


def _open_store(config: Config) -> FirebaseRelayStore:
    return FirebaseRelayStore(
        url=config.relay.url,
        auth_token=config.relay.auth_token,
        request_timeout=config.relay.request_timeout,
    )


def _write_secret_file(path: Path, data: dict) -> None:
    """Write signer pairing data with owner-only permissions."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        os.write(fd, json.dumps(data, indent=2).encode())
    finally:
        os.close(fd)


def _read_secret_file(path: Path) -> dict:
    try:
        return json.loads(path.read_text())
    except FileNotFoundError:
        click.echo(f"Error: No pairing found at {path}. Run 'lodgelock pair' first.", err=True)
        raise SystemExit(1)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Corrupt pairing file {path}: {e}", err=True)
        raise SystemExit(1)


async def _load_rooms(config: Config) -> JsonRoomStore:
    rooms = JsonRoomStore(Path(config.rooms_file))
    await rooms.load()
    return rooms


def _resolve_room(rooms: JsonRoomStore, room_id: str):
    """Find a room by id or unique prefix (like git short hashes)."""
    matches = rooms.find(room_id)
    if not matches:
        click.echo(f"Error: Room '{room_id}' not found.", err=True)
        raise SystemExit(1)
    if len(matches) > 1:
        click.echo(f"Error: Ambiguous room ID '{room_id}'. Matches:", err=True)
        for r in matches:
            click.echo(f"  {r.room_id[:8]} - {r.name}", err=True)
        raise SystemExit(1)
    return matches[0]


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None) -> None:
    """Lodgelock - approve signing requests from a paired device."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config)
    ctx.obj["logger"] = setup_logging(ctx.obj["config"])


@main.command()
def version() -> None:
    """Show version."""
    click.echo(f"lodgelock version {__version__}")


# Signer side


@main.command()
@click.option(
    "--timeout",
    "-t",
    type=float,
    default=None,
    help="Seconds to wait for the approver (default from config).",
)
@click.option("--browser", "-b", is_flag=True, help="Open QR code in browser.")
@click.option("--output", "-o", type=click.Path(), default=None, help="Save QR code to file.")
@click.option(
    "--secret-file",
    type=click.Path(path_type=Path),
    default=DEFAULT_SECRET_FILE,
    show_default=True,
    help="Where to store the pairing.",
)
@click.pass_context
def pair(
    ctx: click.Context,
    timeout: float | None,
    browser: bool,
    output: str | None,
    secret_file: Path,
) -> None:
    """Show a pairing QR code and wait for the approver to confirm."""
    from lodgelock.pairing import PairingManager, QrGenerator

    config = ctx.obj["config"]
    secret_file = secret_file.expanduser()
    previous_secret = None
    if secret_file.exists():
        previous_secret = _read_secret_file(secret_file).get("shared_secret")

    async def _pair():
        async with _open_store(config) as store:
            manager = PairingManager(
                store,
                poll_interval_ms=config.polling.interval_ms,
                timeout=config.polling.pairing_timeout,
            )
            info = await manager.start_pairing(previous_secret=previous_secret)
            qr_gen = QrGenerator(info.code)

            if browser:
                import tempfile
                import webbrowser

                with tempfile.NamedTemporaryFile(suffix=".html", delete=False, mode="w") as f:
                    f.write(qr_gen.to_html())
                    webbrowser.open(f"file://{f.name}")
                click.echo("QR code opened in browser")
            elif output:
                qr_gen.to_png(output)
                click.echo(f"QR code saved to: {output}")
            else:
                click.echo(qr_gen.to_terminal())
                click.echo(info.code)

            click.echo("\nWaiting for approver to scan...")
            registration = await manager.wait_for_pairing(info, timeout=timeout)

            _write_secret_file(
                secret_file,
                {
                    "shared_secret": info.shared_secret,
                    "device_name": registration.device_name,
                    "push_token": registration.push_token,
                },
            )
            click.echo(f"\nPairing successful! Device: {registration.device_name}")

    try:
        asyncio.run(_pair())
    except PairingError as e:
        click.echo(f"\nError: {e}", err=True)
        raise SystemExit(1)
    except RelayError as e:
        click.echo(f"\nError: {e}", err=True)
        raise SystemExit(1)
    except KeyboardInterrupt:
        click.echo("\nCancelled")


@main.command()
@click.argument("message")
@click.option("--address", "-a", required=True, help="Account address to sign for.")
@click.option("--origin", default=None, help="Origin shown to the approver.")
@click.option(
    "--secret-file",
    type=click.Path(path_type=Path),
    default=DEFAULT_SECRET_FILE,
    show_default=True,
)
@click.pass_context
def sign(
    ctx: click.Context, message: str, address: str, origin: str | None, secret_file: Path
) -> None:
    """Ask the paired approver to personal_sign MESSAGE."""
    from lodgelock.account import RemoteAccount
    from lodgelock.relay.client import RelayClient

    config = ctx.obj["config"]
    data = _read_secret_file(secret_file.expanduser())

    async def _sign() -> str:
        async with _open_store(config) as store:
            account = RemoteAccount(
                RelayClient(data["shared_secret"], store),
                address,
                origin=origin,
                poll_interval_ms=config.polling.interval_ms,
                poll_timeout=config.polling.sign_timeout,
            )
            return await account.sign_personal(message)

    try:
        click.echo(asyncio.run(_sign()))
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


# Approver side


@main.command()
@click.argument("code")
@click.option("--name", "-n", default=None, help="Label for the paired signer.")
@click.option("--push-token", default="", help="Push token of this device.")
@click.option("--reject", is_flag=True, help="Reject instead of confirming.")
@click.pass_context
def scan(
    ctx: click.Context, code: str, name: str | None, push_token: str, reject: bool
) -> None:
    """Join the room of a scanned pairing CODE and confirm pairing."""
    import platform

    from lodgelock.pairing import PairingManager, PairingResponder

    config = ctx.obj["config"]

    async def _scan():
        async with _open_store(config) as store:
            manager = PairingManager(store)
            client = manager.join(code)
            responder = PairingResponder()

            if reject:
                await responder.reject(client)
                click.echo("Pairing rejected.")
                return

            device_name = config.device_name or platform.node()
            await responder.confirm(client, push_token, device_name)

            rooms = await _load_rooms(config)
            room = await rooms.add_room(client.shared_secret, name or device_name)
            click.echo(f"Paired room {room.room_id[:8]} ({room.name}).")

    try:
        asyncio.run(_scan())
    except PairingCodeError as e:
        click.echo(f"Error: Invalid pairing code: {e}", err=True)
        raise SystemExit(1)
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@main.command()
@click.option(
    "--interval",
    "-i",
    type=float,
    default=None,
    help="Seconds between scans (default from config).",
)
@click.pass_context
def watch(ctx: click.Context, interval: float | None) -> None:
    """Print new requests from paired rooms as they arrive."""
    from lodgelock.context import RelayContext
    from lodgelock.request_manager import ClientRequest

    config = ctx.obj["config"]
    if interval is not None:
        config.request_manager.scan_interval = interval
    if config.request_manager.scan_interval <= 0:
        click.echo("Error: watch needs a scan interval > 0", err=True)
        raise SystemExit(1)

    async def _watch():
        rooms = JsonRoomStore(Path(config.rooms_file))

        async def on_request(client_request: ClientRequest) -> None:
            room = rooms.get(client_request.room_id)
            click.echo(format_request(client_request.request, room.name if room else None))

        async with RelayContext(config, room_store=rooms, on_request=on_request) as relay:
            click.echo(f"Watching {len(relay.rooms)} rooms. Press Ctrl+C to stop")
            while True:
                await asyncio.sleep(3600)

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        click.echo("\nStopped")


@main.command()
@click.argument("room_id")
@click.argument("request_id")
@click.option("--approve", "artifact", default=None, help="Approve with this artifact.")
@click.option("--reject", is_flag=True, help="Reject the request.")
@click.option("--error", "report_error", is_flag=True, help="Report an error.")
@click.pass_context
def respond(
    ctx: click.Context,
    room_id: str,
    request_id: str,
    artifact: str | None,
    reject: bool,
    report_error: bool,
) -> None:
    """Resolve a pending request (approve with a signature, reject, or error)."""
    from lodgelock.relay.client import RelayClient
    from lodgelock.relay.protocol import RequestStatus, RequestType

    config = ctx.obj["config"]
    if sum([artifact is not None, reject, report_error]) != 1:
        click.echo("Error: Specify exactly one of --approve, --reject, --error", err=True)
        raise SystemExit(1)

    async def _respond():
        rooms = await _load_rooms(config)
        room = _resolve_room(rooms, room_id)

        async with _open_store(config) as store:
            client = RelayClient(room.shared_secret, store)
            matches = [r for r in await client.list_requests() if r.id.startswith(request_id)]
            if len(matches) != 1:
                click.echo(f"Error: Request '{request_id}' not found.", err=True)
                raise SystemExit(1)
            request = matches[0]
            if request.type is RequestType.PAIR:
                click.echo("Error: Pair requests are resolved with 'lodgelock scan'", err=True)
                raise SystemExit(1)

            if reject:
                fields = {"status": RequestStatus.REJECTED}
            elif report_error:
                fields = {"status": RequestStatus.ERROR}
            else:
                fields = {
                    "status": RequestStatus.APPROVED,
                    request.payload.ARTIFACT_FIELD: artifact,
                }
            updated = await client.update_request(request.id, request.type, **fields)
            click.echo(format_request(updated, room.name))

    try:
        asyncio.run(_respond())
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@main.group()
def rooms() -> None:
    """Paired room management commands."""
    pass


@rooms.command("list")
@click.option("--full", is_flag=True, help="Show full room IDs")
@click.pass_context
def rooms_list(ctx: click.Context, full: bool) -> None:
    """List all paired rooms."""

    async def _list():
        store = await _load_rooms(ctx.obj["config"])
        all_rooms = store.all()

        if not all_rooms:
            click.echo("No paired rooms.")
            return

        click.echo(f"{'ID':<12} {'NAME':<20} {'PAIRED':<12} {'LAST SEEN'}")
        click.echo("-" * 70)

        sorted_rooms = sorted(
            all_rooms, key=lambda r: r.last_seen or r.paired_at, reverse=True
        )
        for room in sorted_rooms:
            room_id_display = room.room_id if full else room.room_id[:8]
            click.echo(
                f"{room_id_display:<12} "
                f"{room.name:<20} "
                f"{room.paired_at[:10]:<12} "
                f"{format_time_ago(room.last_seen)}"
            )

    asyncio.run(_list())


@rooms.command("remove")
@click.argument("room_id")
@click.option("--purge", is_flag=True, help="Also delete the room's contents at the relay.")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
@click.pass_context
def rooms_remove(ctx: click.Context, room_id: str, purge: bool, force: bool) -> None:
    """Forget a paired room. Accepts the short ID from 'rooms list'."""
    from lodgelock.relay.client import RelayClient

    config = ctx.obj["config"]

    async def _remove():
        store = await _load_rooms(config)
        room = _resolve_room(store, room_id)

        if not force and not click.confirm(f"Remove room '{room.name}'?"):
            click.echo("Aborted.")
            return

        if purge:
            async with _open_store(config) as relay:
                await RelayClient(room.shared_secret, relay).clear_room()

        await store.remove(room.room_id)
        click.echo("Room removed.")

    try:
        asyncio.run(_remove())
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@rooms.command("purge")
@click.option(
    "--max-age",
    type=float,
    default=86400.0,
    show_default=True,
    help="Delete requests not updated for this many seconds.",
)
@click.pass_context
def rooms_purge(ctx: click.Context, max_age: float) -> None:
    """Delete stale requests from every paired room."""
    from lodgelock.relay.client import RelayClient

    config = ctx.obj["config"]

    async def _purge() -> int:
        store = await _load_rooms(config)
        total = 0
        async with _open_store(config) as relay:
            for room in store.all():
                total += len(await RelayClient(room.shared_secret, relay).purge_expired(max_age))
        return total

    try:
        click.echo(f"Purged {asyncio.run(_purge())} stale requests.")
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
