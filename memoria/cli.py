"""CLI interface for the Memoria brain dashboard."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import MirrorClient
from .cli_progress import SyncProgressDisplay
from .config import config
from .exceptions import (
    MemoriaAPIError,
    MemoriaConfigError,
    MemoriaError,
    PairingError,
)
from .models import Brain, SectorZone
from .output import OutputFormatter
from .pairing import PairingFlow, is_legacy_sync_code
from .session import Session
from .sync.engine import SyncEngine
from .sync.handles import LocalDirectoryHandle
from .utils import format_timestamp

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("memoria").setLevel(logging.DEBUG)
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
    else:
        logging.basicConfig(level=logging.WARNING)


def _resolve_root(out: OutputFormatter, path: Optional[str]) -> Optional[Path]:
    """Pick the brains folder from the argument or the config."""
    if path:
        return Path(path)
    if config.brains_dir is not None:
        return config.brains_dir
    out.error("No brains folder given.")
    out.info("Pass a PATH or set MEMORIA_BRAINS_DIR")
    return None


def _brain_rows(brains: list[Brain], out: OutputFormatter) -> list[dict[str, Any]]:
    return [
        {
            "name": brain.name,
            "zone": brain.zone.value,
            "state": brain.state.value,
            "files": brain.neuron_count,
            "size": out.format_size(brain.mass_bytes),
        }
        for brain in brains
    ]


def _config_error(out: OutputFormatter, error: MemoriaConfigError) -> None:
    out.error(str(error))
    if not config.is_configured():
        out.info("Run 'memoria init' to configure the cloud backend")


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="memoria")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """Memoria - Scan local AI brains and mirror them to the cloud."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


@main.command()
@click.option("--url", prompt="Supabase project URL", help="Backend project URL")
@click.option(
    "--key", prompt="Supabase API key", hide_input=True, help="Backend API key"
)
@click.pass_context
def init(ctx: Any, url: str, key: str) -> None:
    """Configure the cloud backend.

    Stores the backend URL and key in ~/.config/memoria/config.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Checking connection...")
    try:
        with MirrorClient(url=url, key=key) as client:
            client.sync_code_exists("AAA-2222-AAAA")
        out.success("✓ Backend is reachable")
    except MemoriaError as e:
        out.error(f"Connection check failed: {e}")
        if not click.confirm("Save configuration anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    config.save_backend(url, key)
    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command()
@click.argument(
    "path", type=click.Path(exists=True, file_okay=False), required=False
)
@click.option(
    "--zone",
    "-z",
    type=click.Choice([zone.value for zone in SectorZone], case_sensitive=False),
    help="Only show brains in this zone",
)
@click.option("--query", "-s", help="Only show brains whose name contains this")
@click.option(
    "--cloud", is_flag=True, help="Also show which brains are mirrored to the cloud"
)
@click.pass_context
def scan(
    ctx: Any,
    path: Optional[str],
    zone: Optional[str],
    query: Optional[str],
    cloud: bool,
) -> None:
    """Scan a folder and list the brains found in it.

    Every subfolder of PATH is one brain. The first is the core
    (SINGULARITY), the second working memory (EVENT_HORIZON) and all others
    go to the archive (DEEP_VOID).
    """
    out: OutputFormatter = ctx.obj["out"]
    root_path = _resolve_root(out, path)
    if root_path is None:
        ctx.exit(1)

    session = Session.load(store=config)
    try:
        session.mount(LocalDirectoryHandle(root_path))
    except OSError as e:
        out.error(f"Cannot read {root_path}: {e}")
        ctx.exit(1)

    registry = session.registry
    if registry.is_empty:
        out.warning(f"No brain folders found in {root_path}")
        if out.json_output:
            out.output_json([])
        return

    if cloud:
        try:
            session.load_cloud()
        except MemoriaConfigError as e:
            _config_error(out, e)
            ctx.exit(1)
        finally:
            session.close()

    brains = registry.filter(
        query=query, zone=SectorZone(zone.upper()) if zone else None
    )
    if out.json_output:
        data = [brain.to_dict() for brain in brains]
        if cloud:
            for item, brain in zip(data, brains):
                item["mirrored"] = registry.is_mirrored(brain)
        out.output_json(data)
        return

    rows = _brain_rows(brains, out)
    columns = ["name", "zone", "state", "files", "size"]
    if cloud:
        for row, brain in zip(rows, brains):
            row["cloud"] = "yes" if registry.is_mirrored(brain) else "no"
        columns.append("cloud")

    out.output_table(
        rows,
        columns,
        {
            "name": "Name",
            "zone": "Zone",
            "state": "State",
            "files": "Files",
            "size": "Size",
            "cloud": "Mirrored",
        },
    )
    total_bytes, total_files = registry.totals()
    out.info(
        f"\n{len(registry)} brain(s), {total_files} file(s), "
        f"{out.format_size(total_bytes)}"
    )


@main.group()
def pair() -> None:
    """Create, join or leave a cloud sync code."""


@pair.command("new")
@click.pass_context
def pair_new(ctx: Any) -> None:
    """Create a new password-protected sync code."""
    out: OutputFormatter = ctx.obj["out"]

    existing = config.get_sync_credential()
    if existing is not None:
        out.error(f"Already connected to {existing.code}.")
        out.info("Run 'memoria pair disconnect' first")
        ctx.exit(1)

    try:
        flow = PairingFlow(Session.load(store=config).client, config)
        code = flow.start_new()
        out.info(f"Your new sync code: {code}")
        password = click.prompt("Choose a password", hide_input=True)
        confirm = click.prompt("Confirm password", hide_input=True)
        credential = flow.confirm_new(password, confirm)
    except MemoriaConfigError as e:
        _config_error(out, e)
        ctx.exit(1)
    except PairingError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"code": credential.code})
        return
    out.success(f"✓ Connected to {credential.code}")
    out.info("Use this code and password on your other devices")


@pair.command("join")
@click.argument("code")
@click.option("--password", "-p", help="Password of the sync code")
@click.pass_context
def pair_join(ctx: Any, code: str, password: Optional[str]) -> None:
    """Join an existing sync code created on another device."""
    out: OutputFormatter = ctx.obj["out"]

    existing = config.get_sync_credential()
    if existing is not None:
        out.error(f"Already connected to {existing.code}.")
        out.info("Run 'memoria pair disconnect' first")
        ctx.exit(1)

    try:
        flow = PairingFlow(Session.load(store=config).client, config)
        flow.start_existing()
        needs_password = not is_legacy_sync_code(code)
        if needs_password and password is None:
            password = click.prompt("Password", hide_input=True)
        credential = flow.join(code, password)
    except MemoriaConfigError as e:
        _config_error(out, e)
        ctx.exit(1)
    except PairingError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"code": credential.code})
        return
    out.success(f"✓ Connected to {credential.code}")


@pair.command("status")
@click.pass_context
def pair_status(ctx: Any) -> None:
    """Show the sync code this device is paired with."""
    out: OutputFormatter = ctx.obj["out"]
    credential = config.get_sync_credential()

    if out.json_output:
        out.output_json(
            {
                "connected": credential is not None,
                "code": credential.code if credential else None,
                "password_protected": bool(credential and credential.password_hash),
            }
        )
        return

    if credential is None:
        out.info("Not connected. Run 'memoria pair new' or 'memoria pair join'.")
        return
    out.print(f"Sync code: {credential.code}")
    if credential.password_hash:
        out.print("Password protected")
    else:
        out.print("Legacy code (no password)")


@pair.command("disconnect")
@click.pass_context
def pair_disconnect(ctx: Any) -> None:
    """Forget the sync code stored on this device."""
    out: OutputFormatter = ctx.obj["out"]
    if config.get_sync_credential() is None:
        out.info("Not connected.")
        return
    config.clear_sync_credential()
    out.success("✓ Disconnected")


@main.command()
@click.argument(
    "path", type=click.Path(exists=True, file_okay=False), required=False
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.pass_context
def push(ctx: Any, path: Optional[str], no_progress: bool) -> None:
    """Mirror all brains in PATH to the cloud.

    Saves the metadata of every brain and uploads its files under the
    paired sync code. A failed file does not stop the rest of the push.
    """
    out: OutputFormatter = ctx.obj["out"]
    root_path = _resolve_root(out, path)
    if root_path is None:
        ctx.exit(1)

    session = Session.load(store=config)
    try:
        sync_code = session.sync_code
        engine = SyncEngine(session.client)
        root = LocalDirectoryHandle(root_path)
        session.mount(root)
    except MemoriaConfigError as e:
        _config_error(out, e)
        ctx.exit(1)
    except OSError as e:
        out.error(f"Cannot read {root_path}: {e}")
        ctx.exit(1)

    brains = session.registry.syncable()
    if not brains:
        out.warning(f"No brain folders found in {root_path}")
        return

    out.info(f"Pushing {len(brains)} brain(s) to {sync_code}...")
    try:
        if no_progress or out.quiet or out.json_output:
            summary = engine.sync_all(sync_code, brains, root)
        else:
            with SyncProgressDisplay() as display:
                summary = engine.sync_all(
                    sync_code,
                    brains,
                    root,
                    progress_callback=display.update,
                )
    finally:
        session.close()

    for entry in summary.log:
        if entry.level in ("warn", "error"):
            out.warning(entry.message)
    for error in summary.errors:
        logger.debug(f"Upload failure: {error}")

    if out.json_output:
        out.output_json(summary.to_dict())
    else:
        out.print_summary(
            "Push Complete",
            [
                ("Brains", str(summary.brains)),
                ("Uploaded", f"{summary.uploaded}/{summary.total_files} files"),
                ("Failed", str(summary.failed)),
            ],
        )

    if summary.failed:
        ctx.exit(1)


@main.command("ls")
@click.option("--code", "-c", help="Sync code (default: the paired code)")
@click.pass_context
def ls(ctx: Any, code: Optional[str]) -> None:
    """List brains stored in the cloud for a sync code."""
    out: OutputFormatter = ctx.obj["out"]
    session = Session.load(store=config)

    try:
        sync_code = code.strip().upper() if code else session.sync_code
        brains = session.client.list_brains(sync_code)
    except MemoriaConfigError as e:
        _config_error(out, e)
        ctx.exit(1)
    except MemoriaAPIError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        session.close()

    if out.json_output:
        out.output_json([brain.to_dict() for brain in brains])
        return
    if not brains:
        out.info("No brains found for this sync code.")
        return

    out.output_table(
        [
            {
                "name": brain.name,
                "uuid": brain.uuid,
                "zone": brain.zone,
                "files": brain.neuron_count,
                "size": out.format_size(brain.mass_bytes),
                "updated": format_timestamp(brain.updated_at),
            }
            for brain in brains
        ],
        ["name", "uuid", "zone", "files", "size", "updated"],
        {
            "name": "Name",
            "uuid": "UUID",
            "zone": "Zone",
            "files": "Files",
            "size": "Size",
            "updated": "Updated",
        },
    )


@main.command()
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def rm(ctx: Any, name: str, yes: bool) -> None:
    """Delete a brain's files and metadata from the cloud."""
    out: OutputFormatter = ctx.obj["out"]
    session = Session.load(store=config)

    try:
        sync_code = session.sync_code
        client = session.client
        brain = next(
            (b for b in client.list_brains(sync_code) if b.name == name), None
        )
        if brain is None:
            out.error(f"Brain '{name}' not found for sync code {sync_code}")
            ctx.exit(1)

        if not yes and not click.confirm(
            f"Delete '{name}' and all its files from the cloud?", default=False
        ):
            out.warning("Cancelled.")
            return

        removed = client.delete_files(sync_code, name)
        client.delete_brain(brain.id)
    except MemoriaConfigError as e:
        _config_error(out, e)
        ctx.exit(1)
    except MemoriaAPIError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        session.close()

    if out.json_output:
        out.output_json({"name": name, "files_removed": removed})
        return
    out.success(f"✓ Deleted {name} ({removed} file(s))")


if __name__ == "__main__":
    main()
