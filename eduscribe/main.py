"""
EduScribe CLI - tutoring session transcription and homework workflow

One command per scheduled stage. Each run is sequential and safe to repeat.
"""

import typer
from typing import List, Dict, Any
import logging

from rich.console import Console
from rich.table import Table

from .config import get_config, ConfigurationError
from .services.auth import AuthenticationError
from .services.drive import DriveError
from .services.roster import RosterError
from .services.sheets import SheetsError
from .services.storage import StorageError
from .pipelines.homework import HomeworkAssignmentError
from .utils.logging import setup_logging

app = typer.Typer(
    name="eduscribe",
    help="EduScribe - transcribe tutoring sessions and assign personalized homework",
    add_completion=False,
    rich_markup_mode="rich"
)

console = Console()

logger = logging.getLogger(__name__)

STAGE_ERRORS = (
    ConfigurationError, AuthenticationError, DriveError, RosterError,
    SheetsError, StorageError
)


def _configure_logging(verbose: bool) -> None:
    config = get_config()
    level = "DEBUG" if verbose else config.log_level
    setup_logging(level=level, log_file=config.log_file)


def _fail(title: str, error: Exception, verbose: bool) -> None:
    console.print(f"\n[red]{title}:[/red] {error}")
    if verbose:
        console.print_exception()
    raise typer.Exit(1)


def _display_counters(title: str, statistics: Dict[str, Any]) -> None:
    table = Table(title=title)
    table.add_column("Counter", style="cyan")
    table.add_column("Value", justify="right")

    for key, value in statistics.items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))

    console.print(table)


def _display_assignments(assignments) -> None:
    if not assignments:
        return

    table = Table(title="Homework Assigned")
    table.add_column("Student", style="cyan")
    table.add_column("HW ID")
    table.add_column("Transcripts", justify="right")
    table.add_column("Prompt File")
    table.add_column("Emailed", justify="center")

    for assignment in assignments:
        table.add_row(
            assignment.student_name,
            assignment.hw_id,
            str(len(assignment.transcript_names)),
            assignment.prompt_file_name or "",
            "✅" if assignment.notification_sent else "-"
        )

    console.print(table)


VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")


@app.command()
def discover(verbose: bool = VERBOSE_OPTION):
    """
    Find new recordings, rename them and submit each for transcription once.
    """
    _configure_logging(verbose)
    console.print("\n[bold cyan]EduScribe Discovery[/bold cyan]")

    from .pipelines.discover import create_discovery_pipeline

    try:
        results = create_discovery_pipeline().run()
    except STAGE_ERRORS as e:
        _fail("Discovery failed", e, verbose)
    except Exception as e:
        _fail("Unexpected error", e, verbose)

    _display_counters("Discovery Summary", results.statistics)


@app.command()
def monitor(verbose: bool = VERBOSE_OPTION):
    """
    Poll active transcription jobs and collect finished transcripts.
    """
    _configure_logging(verbose)
    console.print("\n[bold cyan]EduScribe Job Monitor[/bold cyan]")

    from .pipelines.monitor import create_job_monitor

    try:
        results = create_job_monitor().run()
    except STAGE_ERRORS as e:
        _fail("Monitor failed", e, verbose)
    except Exception as e:
        _fail("Unexpected error", e, verbose)

    _display_counters("Monitor Summary", results.statistics)


@app.command(name="import-transcripts")
def import_transcripts(verbose: bool = VERBOSE_OPTION):
    """
    Copy new transcripts into student folders, then assign one homework per student.
    """
    _configure_logging(verbose)
    console.print("\n[bold cyan]EduScribe Transcript Import[/bold cyan]")

    from .services.auth import create_credential_provider
    from .services.roster import create_roster_service
    from .pipelines.distribute import create_transcript_distributor
    from .pipelines.homework import create_homework_assigner

    try:
        provider = create_credential_provider()
        roster = create_roster_service(credential_provider=provider)
        distributor = create_transcript_distributor(provider, roster=roster)
        assigner = create_homework_assigner(provider, roster=roster, drive=distributor.drive)

        distribution = distributor.run()
        homework = assigner.assign_batches(distribution.batches)
    except STAGE_ERRORS as e:
        _fail("Import failed", e, verbose)
    except Exception as e:
        _fail("Unexpected error", e, verbose)

    _display_counters("Import Summary", distribution.statistics)
    _display_counters("Homework Summary", homework.statistics)
    _display_assignments(homework.assignments)

    if distribution.error_details:
        console.print(f"\n[yellow]Errors ({len(distribution.error_details)}):[/yellow]")
        for error in distribution.error_details[:5]:
            console.print(f"  - {error}")
        if len(distribution.error_details) > 5:
            console.print(f"  ... and {len(distribution.error_details) - 5} more errors")


@app.command()
def assign(
    email: str = typer.Argument(..., help="Student email as listed in the roster"),
    transcripts: List[str] = typer.Argument(..., help="Transcript file names to consolidate"),
    verbose: bool = VERBOSE_OPTION
):
    """
    Manually assign one homework to a student from the given transcripts.

    Examples:

        eduscribe assign jane@example.com Jane_Doe_2024-03-01_AbCdEfGhIj.txt
    """
    _configure_logging(verbose)

    from .pipelines.homework import create_homework_assigner

    try:
        assigner = create_homework_assigner()
        assigner.ledger.ensure_header()
        assignment = assigner.assign(email, transcripts)
    except (HomeworkAssignmentError,) + STAGE_ERRORS as e:
        _fail("Assignment failed", e, verbose)
    except Exception as e:
        _fail("Unexpected error", e, verbose)

    console.print(f"\n[bold green]Assigned {assignment.hw_id} to {assignment.student_name}[/bold green]")
    _display_assignments([assignment])


def _run_check(name: str, check) -> Dict[str, Any]:
    try:
        ok, detail = check()
    except Exception as e:
        logger.debug(f"Check '{name}' raised", exc_info=True)
        ok, detail = False, str(e)
    return {"name": name, "ok": ok, "detail": detail}


@app.command()
def check(verbose: bool = VERBOSE_OPTION):
    """
    Verify credentials, bucket access, storage listings, roster access and endpoints.
    """
    _configure_logging(verbose)
    console.print("\n[bold cyan]EduScribe Diagnostics[/bold cyan]")

    from .services.auth import create_credential_provider, STORAGE_SCOPES
    from .services.roster import create_roster_service
    from .services.storage import create_storage_service, INCOMING_PREFIX, TRANSCRIPTS_PREFIX

    config = get_config()
    state: Dict[str, Any] = {}

    def token():
        state["provider"] = create_credential_provider()
        state["provider"].issue_token(STORAGE_SCOPES)
        return True, f"issued for {state['provider'].service_account_email}"

    def bucket():
        state["storage"] = create_storage_service(state.get("provider"))
        ok = state["storage"].check_access()
        return ok, f"gs://{state['storage'].bucket_name}"

    def incoming():
        if "storage" not in state:
            return False, "skipped, no storage client"
        videos = state["storage"].list_objects(INCOMING_PREFIX, content_types=["video/"])
        return True, f"{len(videos)} videos under {INCOMING_PREFIX}"

    def transcripts():
        if "storage" not in state:
            return False, "skipped, no storage client"
        texts = state["storage"].list_objects(TRANSCRIPTS_PREFIX, content_types=["text/plain"])
        return True, f"{len(texts)} text files under {TRANSCRIPTS_PREFIX}"

    def roster():
        entries = create_roster_service(credential_provider=state.get("provider")).load()
        return bool(entries), f"{len(entries)} students in '{config.sheets.roster_tab}'"

    def cloud_run():
        url = config.submission.cloud_run_url
        return bool(url), url or "CLOUD_RUN_URL not set"

    checks = [
        _run_check("Service account token", token),
        _run_check("Bucket access", bucket),
        _run_check("Incoming recordings", incoming),
        _run_check("Transcripts", transcripts),
        _run_check("Student roster", roster),
        _run_check("Cloud Run URL", cloud_run)
    ]

    table = Table(title="Checks")
    table.add_column("Check", style="cyan")
    table.add_column("Result", justify="center")
    table.add_column("Detail")
    for item in checks:
        table.add_row(item["name"], "✅" if item["ok"] else "❌", item["detail"])
    console.print(table)

    if not all(item["ok"] for item in checks):
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
