"""Rich console rendering of tracked audit jobs."""

from typing import Iterable

from rich import box
from rich.console import Console
from rich.table import Table

from audit_engine.core.managers.status_classifier import (
    StatusTone,
    is_failed,
    label,
    origin_label,
    tone,
)
from audit_engine.core.models.action import ActionResult
from audit_engine.core.models.job import AuditJob
from audit_engine.core.utils.job_views import format_datetime, format_job_result

console = Console()

TONE_STYLES = {
    StatusTone.success: "green",
    StatusTone.warning: "yellow",
    StatusTone.error: "red",
    StatusTone.neutral: "dim",
}


def build_jobs_table(jobs: Iterable[AuditJob]) -> Table:
    table = Table(box=box.SIMPLE, show_header=True, padding=(0, 1))
    table.add_column("Job", style="cyan")
    table.add_column("Partners", style="white")
    table.add_column("Origin", style="white")
    table.add_column("Status")
    table.add_column("Requested by", style="white")
    table.add_column("Created", style="white")
    table.add_column("Updated", style="white")
    table.add_column("Result", style="white")

    for job in jobs:
        style = TONE_STYLES[tone(job.status)]
        status_cell = f"[{style}]{label(job.status)}[/{style}]"
        if job.error:
            status_cell += f"\n[red]{job.error}[/red]"
        result_cell = format_job_result(job.result)
        if is_failed(job.status):
            result_cell += "\n[dim]Consider reprocessing the audit.[/dim]"
        table.add_row(
            job.job_id,
            ", ".join(job.partner_ids) if job.partner_ids else "[dim]Not informed[/dim]",
            origin_label(job.origin),
            status_cell,
            job.requested_by or "-",
            format_datetime(job.created_at),
            format_datetime(job.completed_at or job.last_checked_at),
            result_cell,
        )
    return table


def print_result(result: ActionResult) -> None:
    if result.ok:
        console.print(f"[green]✓[/green] {result.message}")
    else:
        kind = result.error.kind if result.error else "Error"
        console.print(f"[red]✗[/red] {result.message} [dim]({kind})[/dim]")


def print_jobs(jobs: Iterable[AuditJob]) -> None:
    console.print(build_jobs_table(jobs))
