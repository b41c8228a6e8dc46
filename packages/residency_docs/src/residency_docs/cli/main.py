"""
SSW CLI

Command-line interface for managing specified skilled worker residency
documents.

Commands:
- login / logout / whoami: Session management
- list-foreigners / add-foreigner / update-foreigner / delete-foreigner
- list-documents / create-document / set-document-status / delete-document
- show-company / update-company
- list-activity / add-activity
- dashboard: Deadline task board and document counts
- reset-demo: Discard the locally persisted state
"""

import asyncio
import json
from datetime import date
from typing import Any, Awaitable, Callable, Optional

import redis
import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from basecore.logging import setup_logging
from basecore.settings import ConfigurationError, get_settings
from residency_docs.bootstrap import Application, build_application
from residency_docs.constants import DOCUMENT_STATUS_LABELS, DOCUMENT_TYPE_LABELS
from residency_docs.contracts import DocumentDraft, DocumentStatus, DocumentType, ForeignerDraft
from residency_docs.dashboard import build_task_summaries, dashboard_stats
from residency_docs.http import ApiError
from residency_docs.notifications import Notifier, Toast
from residency_docs.state import CompanyNotLoadedError

app = typer.Typer(
    name="ssw",
    help="特定技能 在留書類管理 CLI",
)

console = Console()

STATUS_STYLES = {
    "overdue": "bold red",
    "danger": "red",
    "warning": "yellow",
    "normal": "green",
    "none": "dim",
}


class ConsoleNotifier(Notifier):
    """Prints toasts to the terminal."""

    def notify(self, toast: Toast) -> None:
        color = "red" if toast.variant == "destructive" else "cyan"
        rprint(f"[{color}]{toast.title}: {toast.description}[/{color}]")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    setup_logging(level="DEBUG" if verbose else None)


def run(handler: Callable[[Application], Awaitable[Any]], require_login: bool = True) -> Any:
    """Build the application, run ``handler`` and map failures to exit code 1."""

    async def _run() -> Any:
        application = build_application(notifier=ConsoleNotifier())
        try:
            await application.start()
            if require_login and not application.session.is_authenticated:
                rprint("[red]ログインしていません。`ssw login` を実行してください。[/red]")
                raise typer.Exit(1)
            return await handler(application)
        finally:
            await application.close()

    try:
        return asyncio.run(_run())
    except ConfigurationError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except ApiError:
        # Already shown by the notifier
        raise typer.Exit(1)
    except redis.RedisError as e:
        rprint(f"[red]Redis error: {e}[/red]")
        raise typer.Exit(1)


def _parse_date(value: str, option: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        rprint(f"[red]Invalid date for {option}: {value} (expected YYYY-MM-DD)[/red]")
        raise typer.Exit(1)


def _fmt(value: Any) -> str:
    if value is None or value == "":
        return "-"
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d")
    return str(value)


# =============================================================================
# Session
# =============================================================================


@app.command()
def login(
    email: str = typer.Option(..., prompt=True, help="Email address"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Password"),
):
    """
    Sign in and remember the session.
    """

    async def handler(application: Application) -> bool:
        ok = await application.session.login(email, password)
        if ok:
            await application.actions.load_initial_data()
        return ok

    if not run(handler, require_login=False):
        raise typer.Exit(1)

    rprint(f"[green]Logged in as {email}[/green]")


@app.command()
def logout():
    """
    Sign out and forget the stored session.
    """

    async def handler(application: Application) -> None:
        await application.session.logout()

    run(handler, require_login=False)
    rprint("[green]Logged out[/green]")


@app.command()
def whoami():
    """
    Show the signed-in user.
    """

    async def handler(application: Application) -> None:
        user = application.session.user
        session = application.session.session
        rprint(f"\n[cyan]{user.name}[/cyan] <{user.email}>")
        rprint(f"  Role: {user.role.value}")
        rprint(f"  Company: {user.company_id}")
        rprint(f"  Session expires: {session.expires_at.strftime('%Y-%m-%d %H:%M')}")

    run(handler)


# =============================================================================
# Foreigners
# =============================================================================


@app.command()
def list_foreigners():
    """
    List registered foreign workers.
    """

    async def handler(application: Application) -> None:
        foreigners = application.store.state.foreigners
        if not foreigners:
            rprint("[yellow]No foreigners found[/yellow]")
            return

        table = Table(title="外国人材一覧")
        table.add_column("ID", style="dim")
        table.add_column("氏名")
        table.add_column("国籍")
        table.add_column("在留資格")
        table.add_column("在留期間")
        table.add_column("分野")
        table.add_column("備考")

        for f in foreigners:
            table.add_row(
                f.id,
                f"{f.name} ({f.name_kana})" if f.name_kana else f.name,
                f.nationality,
                f.residence_status,
                f.residence_period,
                _fmt(f.work_category),
                _fmt(f.notes),
            )

        console.print(table)

    run(handler)


@app.command()
def add_foreigner(
    name: str = typer.Option(..., help="Full name"),
    name_kana: str = typer.Option("", help="Name in katakana"),
    nationality: str = typer.Option(..., help="Nationality (e.g., ベトナム)"),
    birth_date: str = typer.Option(..., help="Birth date (YYYY-MM-DD)"),
    passport_number: str = typer.Option("", help="Passport number"),
    residence_status: str = typer.Option("特定技能1号", help="Residence status"),
    residence_period: str = typer.Option("1年", help="Residence period"),
    work_category: str = typer.Option("", help="Work category"),
    notes: Optional[str] = typer.Option(None, help="Notes"),
):
    """
    Register a foreign worker.
    """
    born = _parse_date(birth_date, "--birth-date")

    async def handler(application: Application) -> None:
        draft = ForeignerDraft(
            company_id=application.session.user.company_id,
            name=name,
            name_kana=name_kana,
            nationality=nationality,
            birth_date=born,
            passport_number=passport_number,
            residence_status=residence_status,
            residence_period=residence_period,
            work_category=work_category,
            notes=notes,
        )
        created = await application.actions.create_foreigner(draft)
        rprint(f"[green]Registered {created.name} ({created.id})[/green]")

    run(handler)


@app.command()
def update_foreigner(
    foreigner_id: str = typer.Argument(..., help="Foreigner ID"),
    name: Optional[str] = typer.Option(None, help="Full name"),
    name_kana: Optional[str] = typer.Option(None, help="Name in katakana"),
    nationality: Optional[str] = typer.Option(None, help="Nationality"),
    birth_date: Optional[str] = typer.Option(None, help="Birth date (YYYY-MM-DD)"),
    passport_number: Optional[str] = typer.Option(None, help="Passport number"),
    residence_status: Optional[str] = typer.Option(None, help="Residence status"),
    residence_period: Optional[str] = typer.Option(None, help="Residence period"),
    work_category: Optional[str] = typer.Option(None, help="Work category"),
    notes: Optional[str] = typer.Option(None, help="Notes"),
):
    """
    Update fields of a foreign worker. Only the given options change.
    """
    updates: dict[str, Any] = {
        key: value
        for key, value in {
            "name": name,
            "name_kana": name_kana,
            "nationality": nationality,
            "passport_number": passport_number,
            "residence_status": residence_status,
            "residence_period": residence_period,
            "work_category": work_category,
            "notes": notes,
        }.items()
        if value is not None
    }
    if birth_date is not None:
        updates["birth_date"] = _parse_date(birth_date, "--birth-date")

    if not updates:
        rprint("[yellow]Nothing to update[/yellow]")
        raise typer.Exit(0)

    async def handler(application: Application) -> None:
        updated = await application.actions.update_foreigner(foreigner_id, updates)
        rprint(f"[green]Updated {updated.name} ({updated.id})[/green]")

    run(handler)


@app.command()
def delete_foreigner(
    foreigner_id: str = typer.Argument(..., help="Foreigner ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Delete a foreign worker. Fails while documents still reference them.
    """
    if not yes:
        typer.confirm(f"Delete foreigner {foreigner_id}?", abort=True)

    async def handler(application: Application) -> None:
        await application.actions.delete_foreigner(foreigner_id)
        rprint(f"[green]Deleted foreigner {foreigner_id}[/green]")

    run(handler)


# =============================================================================
# Documents
# =============================================================================


@app.command()
def list_documents(
    foreigner_id: Optional[str] = typer.Option(None, "--foreigner", help="Filter by foreigner ID"),
    status: Optional[str] = typer.Option(None, help="Filter by status (draft, submitted, approved, rejected)"),
):
    """
    List documents, newest first.
    """
    status_filter = None
    if status:
        try:
            status_filter = DocumentStatus(status)
        except ValueError:
            rprint(f"[yellow]Unknown status: {status}[/yellow]")

    async def handler(application: Application) -> None:
        state = application.store.state
        names = {f.id: f.name for f in state.foreigners}
        documents = [
            d
            for d in state.documents
            if (foreigner_id is None or d.foreigner_id == foreigner_id)
            and (status_filter is None or d.status == status_filter)
        ]
        if not documents:
            rprint("[yellow]No documents found[/yellow]")
            return

        table = Table(title="書類一覧")
        table.add_column("ID", style="dim")
        table.add_column("種類")
        table.add_column("タイトル")
        table.add_column("外国人材")
        table.add_column("ステータス")
        table.add_column("更新日")

        for d in documents:
            table.add_row(
                d.id,
                DOCUMENT_TYPE_LABELS[d.type],
                d.title,
                names.get(d.foreigner_id, d.foreigner_id),
                DOCUMENT_STATUS_LABELS[d.status],
                _fmt(d.updated_at),
            )

        console.print(table)

    run(handler)


@app.command()
def create_document(
    doc_type: str = typer.Option(..., "--type", help="Document type (e.g., period_extension)"),
    title: str = typer.Option(..., help="Document title"),
    foreigner_id: str = typer.Option(..., "--foreigner", help="Foreigner ID"),
    status: str = typer.Option("draft", help="Initial status"),
    deadline: Optional[str] = typer.Option(None, help="Deadline (YYYY-MM-DD), stored in the form data"),
    data: Optional[str] = typer.Option(None, help="Form data as a JSON object"),
):
    """
    Create a document for a foreign worker.
    """
    try:
        document_type = DocumentType(doc_type)
        document_status = DocumentStatus(status)
    except ValueError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    form_data: dict[str, Any] = {}
    if data:
        try:
            form_data = json.loads(data)
        except json.JSONDecodeError as e:
            rprint(f"[red]Invalid JSON for --data: {e}[/red]")
            raise typer.Exit(1)
        if not isinstance(form_data, dict):
            rprint("[red]--data must be a JSON object[/red]")
            raise typer.Exit(1)
    if deadline:
        form_data["deadline"] = _parse_date(deadline, "--deadline").isoformat()

    async def handler(application: Application) -> None:
        draft = DocumentDraft(
            type=document_type,
            title=title,
            foreigner_id=foreigner_id,
            status=document_status,
            data=form_data,
        )
        created = await application.actions.create_document(draft)
        rprint(f"[green]Created {DOCUMENT_TYPE_LABELS[created.type]}: {created.title} ({created.id})[/green]")

    run(handler)


@app.command()
def set_document_status(
    document_id: str = typer.Argument(..., help="Document ID"),
    status: str = typer.Argument(..., help="New status (draft, submitted, approved, rejected)"),
):
    """
    Change the status of a document.
    """
    try:
        new_status = DocumentStatus(status)
    except ValueError:
        rprint(f"[red]Unknown status: {status}[/red]")
        raise typer.Exit(1)

    async def handler(application: Application) -> None:
        updated = await application.actions.update_document_status(document_id, new_status)
        rprint(f"[green]{updated.title}: {DOCUMENT_STATUS_LABELS[updated.status]}[/green]")

    run(handler)


@app.command()
def delete_document(
    document_id: str = typer.Argument(..., help="Document ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Delete a document.
    """
    if not yes:
        typer.confirm(f"Delete document {document_id}?", abort=True)

    async def handler(application: Application) -> None:
        await application.actions.delete_document(document_id)
        rprint(f"[green]Deleted document {document_id}[/green]")

    run(handler)


# =============================================================================
# Company
# =============================================================================


@app.command()
def show_company():
    """
    Show the accepting organization.
    """

    async def handler(application: Application) -> None:
        company = application.store.state.company
        if company is None:
            rprint("[yellow]Company not found[/yellow]")
            return

        rprint(f"\n[cyan]{company.name}[/cyan] ({company.id})")
        rprint(f"  所在地: {_fmt(company.address)}")
        rprint(f"  代表者: {_fmt(company.representative)}")
        rprint(f"  電話番号: {_fmt(company.phone)}")
        rprint(f"  登録番号: {_fmt(company.registration_number)}")

    run(handler)


@app.command()
def update_company(
    name: Optional[str] = typer.Option(None, help="Company name"),
    address: Optional[str] = typer.Option(None, help="Address"),
    representative: Optional[str] = typer.Option(None, help="Representative"),
    phone: Optional[str] = typer.Option(None, help="Phone number"),
    registration_number: Optional[str] = typer.Option(None, help="Registration number"),
):
    """
    Update the accepting organization.
    """
    updates = {
        key: value
        for key, value in {
            "name": name,
            "address": address,
            "representative": representative,
            "phone": phone,
            "registration_number": registration_number,
        }.items()
        if value is not None
    }
    if not updates:
        rprint("[yellow]Nothing to update[/yellow]")
        raise typer.Exit(0)

    async def handler(application: Application) -> None:
        company = application.store.state.company
        if company is None:
            rprint("[red]Company not loaded[/red]")
            raise typer.Exit(1)
        updated = await application.actions.update_company(company.id, updates)
        rprint(f"[green]Updated {updated.name}[/green]")

    run(handler)


# =============================================================================
# Activity
# =============================================================================


@app.command()
def list_activity(
    limit: int = typer.Option(20, help="Maximum entries to show"),
):
    """
    Show the most recent activity.
    """

    async def handler(application: Application) -> None:
        activities = application.store.state.activities[:limit]
        if not activities:
            rprint("[yellow]No activity yet[/yellow]")
            return

        for entry in activities:
            rprint(f"  [dim]{entry.created_at.strftime('%Y-%m-%d %H:%M')}[/dim] {entry.message}")

    run(handler)


@app.command()
def add_activity(
    message: str = typer.Argument(..., help="Activity message"),
):
    """
    Append an entry to the activity feed.
    """

    async def handler(application: Application) -> None:
        try:
            entry = await application.actions.create_activity(message)
        except CompanyNotLoadedError as e:
            rprint(f"[red]{e}[/red]")
            raise typer.Exit(1)
        rprint(f"[green]Recorded activity {entry.id}[/green]")

    run(handler)


# =============================================================================
# Dashboard
# =============================================================================


@app.command()
def dashboard():
    """
    Show the deadline task board and document counts.
    """

    async def handler(application: Application) -> None:
        state = application.store.state
        stats = dashboard_stats(state.documents)
        rprint(
            f"\n申請中: {stats.submitted}件  承認済み: {stats.approved}件  今月の作成: {stats.created_this_month}件\n"
        )

        table = Table(title="タスクボード")
        table.add_column("項目")
        table.add_column("件数")
        table.add_column("状態")
        table.add_column("残り日数")
        table.add_column("詳細")

        for card in build_task_summaries(state.documents, state.foreigners):
            style = STATUS_STYLES[card.status.value]
            table.add_row(
                card.title,
                str(card.count),
                f"[{style}]{card.status.value}[/{style}]",
                "-" if card.remaining_days is None else str(card.remaining_days),
                " / ".join(f"{m.label}: {m.value}" for m in card.meta or []) or "-",
            )

        console.print(table)

    run(handler)


@app.command()
def reset_demo():
    """
    Discard the locally persisted state so the demo data is re-seeded.
    """
    if get_settings().RESIDENCY_BACKEND != "stub":
        rprint("[yellow]Only the local cache is cleared for non-stub backends[/yellow]")

    async def handler(application: Application) -> None:
        application.state_storage.clear()

    run(handler, require_login=False)
    rprint("[green]Local state cleared[/green]")


if __name__ == "__main__":
    app()
