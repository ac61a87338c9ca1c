"""Companion CLI that pulls a brain from the cloud onto this device."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import MirrorClient
from .cli_progress import SyncProgressDisplay
from .exceptions import MemoriaAPIError, MemoriaConfigError
from .output import OutputFormatter
from .pairing import is_valid_sync_code, normalize_sync_code
from .sync.engine import SyncEngine

logger = logging.getLogger(__name__)

DEFAULT_AGENT_DIR = Path.home() / ".gemini" / "antigravity"


def _list_brains(client: MirrorClient, sync_code: str, out: OutputFormatter) -> None:
    brains = client.list_brains(sync_code)

    if out.json_output:
        out.output_json(
            [{"name": b.name, "uuid": b.uuid, "zone": b.zone} for b in brains]
        )
        return

    if not brains:
        out.print("No brains found for this sync code.")
        return

    out.print(f"\nFound {len(brains)} brains:\n")
    for index, brain in enumerate(brains, start=1):
        out.print(f"  {index}. {brain.name}")
        out.print(f"     UUID: {brain.uuid}")
        out.print("")

    out.info("To sync a brain, run:")
    out.info("  memoria-sync --code YOUR_CODE --uuid UUID_FROM_ABOVE")


def _pull_brain(
    client: MirrorClient,
    sync_code: str,
    uuid: str,
    dest: Path,
    out: OutputFormatter,
    no_progress: bool,
) -> bool:
    """Download a brain; returns False if some files failed."""
    engine = SyncEngine(client)

    if no_progress or out.quiet or out.json_output:
        result = engine.pull_brain(sync_code, uuid, dest)
    else:
        with SyncProgressDisplay(verb="Downloading") as display:
            result = engine.pull_brain(
                sync_code, uuid, dest, progress_callback=display.update
            )

    if out.json_output:
        out.output_json(result.to_dict())
    else:
        out.print_summary(
            f"Pulled {result.brain.name}",
            [
                ("Files", f"{result.downloaded}/{result.total_files}"),
                ("Failed", str(result.failed)),
                ("Saved to", result.destination),
                ("Conversation", result.conversation_path or "not found"),
            ],
        )
        out.print("")
        out.success("✓ Sync complete!")
        out.info(f"   To resume: gemini --resume {uuid}")

    return result.failed == 0


@click.command()
@click.option("--code", "-c", "sync_code", help="Sync code from the dashboard")
@click.option("--uuid", "-u", help="Brain UUID to download")
@click.option(
    "--list", "-l", "list_only", is_flag=True, help="List brains for the sync code"
)
@click.option(
    "--dest",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_AGENT_DIR,
    show_default=True,
    help="Agent data directory to download into",
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(package_name="memoria")
@click.pass_context
def main(
    ctx: Any,
    sync_code: Optional[str],
    uuid: Optional[str],
    list_only: bool,
    dest: Path,
    no_progress: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """Cross-device sync for Memoria brains.

    \b
    Usage:
      memoria-sync --code CODE --list
      memoria-sync --code CODE --uuid UUID
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    out = OutputFormatter(json_output=json_output)

    if not sync_code:
        out.error("Sync code is required. Use --code YOUR_SYNC_CODE")
        ctx.exit(1)

    code = normalize_sync_code(sync_code or "")
    if not is_valid_sync_code(code):
        out.error(f"Invalid sync code: {code}. Use: ABC-1234-DEFG")
        ctx.exit(1)

    if not list_only and not uuid:
        out.error("Either --uuid or --list is required")
        out.print("")
        out.print("Usage:")
        out.print("  memoria-sync --code CODE --list")
        out.print("  memoria-sync --code CODE --uuid UUID")
        ctx.exit(1)

    out.info("Connecting to Memoria cloud...")
    ok = True
    try:
        with MirrorClient() as client:
            if list_only:
                _list_brains(client, code, out)
            else:
                out.info(f"Downloading {uuid}...")
                ok = _pull_brain(client, code, str(uuid), dest, out, no_progress)
    except MemoriaConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    except MemoriaAPIError as e:
        out.error(str(e))
        ctx.exit(1)
    except OSError as e:
        out.error(f"Cannot write to {dest}: {e}")
        ctx.exit(1)

    if not ok:
        ctx.exit(1)


if __name__ == "__main__":
    main()
