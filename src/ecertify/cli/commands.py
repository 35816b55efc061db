"""CLI commands for E-Certify.

Commands:
- init-db: Create the database schema
- register-institute / register-student: Directory upserts
- institutes: List institutes
- upload / approve / pending / certificates: Certificate lifecycle
- grant-access / access-logs: Sharing with viewers
- request-transfer / approve-transfer / decline-transfer / transfers:
  Institute transfer workflow
- serve: Run the Web API
"""

import mimetypes
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ecertify.core.container import Services, build_services, get_services, set_services
from ecertify.errors import ECertifyError, NotFoundError

app = typer.Typer(
    name="ecertify",
    help="Certificate issuance, approval and institute transfers.",
    no_args_is_help=True,
)

console = Console()


def _fail(e: ECertifyError) -> None:
    console.print(f"[red]✗ {e.message}[/red] [dim]({e.code})[/dim]")
    raise typer.Exit(code=1)


def _institute_label(svc: Services, institute_id: int | None) -> str:
    if institute_id is None:
        return "-"
    try:
        return svc.directory.get_institute(institute_id).name
    except NotFoundError:
        return f"#{institute_id}"


@app.callback()
def main(
    db: Path | None = typer.Option(
        None, "--db", help="SQLite database path (overrides config)"
    ),
) -> None:
    """Certificate issuance, approval and institute transfers."""
    if db is not None:
        set_services(build_services(db_path=db))


# =============================================================================
# DIRECTORY
# =============================================================================


@app.command(name="init-db")
def init_db() -> None:
    """Create the database schema if missing."""
    svc = get_services()
    svc.db.init_schema()
    console.print(f"[green]✓ Database ready[/green] [dim]{svc.db.path}[/dim]")


@app.command(name="register-institute")
def register_institute(
    address: str = typer.Argument(..., help="Institute wallet address"),
    name: str = typer.Option(..., "--name", "-n", help="Institute name"),
    email: str = typer.Option("", "--email", "-e", help="Contact email"),
) -> None:
    """Register an institute or update its name and email."""
    svc = get_services()
    try:
        institute_id = svc.directory.upsert_institute(address, name, email)
    except ECertifyError as e:
        _fail(e)
    console.print(f"[green]✓ Institute saved[/green] [dim]id:[/dim] {institute_id}")


@app.command(name="register-student")
def register_student(
    address: str = typer.Argument(..., help="Student wallet address"),
    name: str = typer.Option(..., "--name", "-n", help="Student name"),
    email: str = typer.Option("", "--email", "-e", help="Contact email"),
    institute: str | None = typer.Option(
        None, "--institute", "-i", help="Wallet address of the enrolling institute"
    ),
) -> None:
    """Register a student, optionally enrolled at an institute."""
    svc = get_services()
    try:
        institute_id = (
            svc.directory.require_institute_id(institute) if institute else None
        )
        student_id = svc.directory.upsert_student(address, name, email, institute_id)
    except ECertifyError as e:
        _fail(e)
    console.print(f"[green]✓ Student saved[/green] [dim]id:[/dim] {student_id}")


@app.command()
def institutes() -> None:
    """List registered institutes."""
    svc = get_services()
    rows = svc.directory.list_institutes()
    if not rows:
        console.print("[yellow]No institutes registered[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Address")
    table.add_column("Name")
    table.add_column("Email")
    for institute in rows:
        table.add_row(
            str(institute.id), institute.address, institute.name, institute.email
        )
    console.print(table)


# =============================================================================
# CERTIFICATES
# =============================================================================


@app.command()
def upload(
    file: str = typer.Argument(..., help="Path to the certificate file"),
    institute: str = typer.Option(..., "--institute", "-i", help="Issuing institute address"),
    student: str = typer.Option(..., "--student", "-s", help="Student address"),
    file_type: str | None = typer.Option(None, "--type", "-t", help="MIME type"),
    auto_provision: bool = typer.Option(
        False, "--auto-provision", help="Create placeholder records for unknown addresses"
    ),
) -> None:
    """Upload a certificate file and issue it to a student."""
    file_path = Path(file).expanduser().resolve()
    if not file_path.is_file():
        console.print(f"[red]✗ File not found: {file_path}[/red]")
        raise typer.Exit(code=1)

    svc = get_services()
    try:
        certificate = svc.certificates.upload(
            institute_address=institute,
            student_address=student,
            data=file_path.read_bytes(),
            file_name=file_path.name,
            file_type=file_type or mimetypes.guess_type(file_path.name)[0],
            auto_provision=auto_provision,
        )
    except ECertifyError as e:
        _fail(e)

    console.print(f"[green]✓ Certificate issued[/green] [dim]id:[/dim] {certificate.id}")
    console.print(f"  [dim]content:[/dim] {certificate.content_id}")
    console.print(f"  [dim]url:[/dim]     {svc.certificates.content_url(certificate)}")


@app.command()
def approve(
    certificate_id: int = typer.Argument(..., help="Certificate ID"),
    institute: str = typer.Option(..., "--institute", "-i", help="Issuing institute address"),
) -> None:
    """Approve a certificate as its issuing institute."""
    svc = get_services()
    try:
        institute_id = svc.directory.require_institute_id(institute)
        svc.certificates.approve(certificate_id, institute_id)
    except ECertifyError as e:
        _fail(e)
    console.print(f"[green]✓ Certificate {certificate_id} approved[/green]")


@app.command()
def pending(
    institute: str = typer.Argument(..., help="Institute address"),
) -> None:
    """Show certificates and transfer requests waiting on an institute."""
    svc = get_services()
    try:
        institute_id = svc.directory.require_institute_id(institute)
    except ECertifyError as e:
        _fail(e)

    certificates = svc.certificates.list_pending_for_institute(institute_id)
    transfers = svc.transfers.list_pending_for_institute(institute_id)

    console.print(f"[bold]Pending certificates ({len(certificates)})[/bold]")
    for c in certificates:
        student = svc.directory.get_student(c.student_id)
        console.print(f"  #{c.id}  {student.name}  [dim]{c.content_id}  {c.issued_at}[/dim]")

    console.print(f"[bold]Pending transfer requests ({len(transfers)})[/bold]")
    for t in transfers:
        student = svc.directory.get_student(t.student_id)
        console.print(
            f"  #{t.id}  {student.name}  "
            f"[dim]from {_institute_label(svc, t.from_institute_id)}  {t.created_at}[/dim]"
        )


@app.command()
def certificates(
    student: str = typer.Argument(..., help="Student address"),
) -> None:
    """List a student's certificates, newest first."""
    svc = get_services()
    try:
        student_id = svc.directory.require_student_id(student)
    except ECertifyError as e:
        _fail(e)

    rows = svc.certificates.list_for_student(student_id)
    if not rows:
        console.print("[yellow]No certificates[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Institute")
    table.add_column("Content")
    table.add_column("Status")
    table.add_column("Issued")
    for c in rows:
        table.add_row(
            str(c.id),
            _institute_label(svc, c.institute_id),
            c.content_id,
            "[green]approved[/green]" if c.approved else "[yellow]pending[/yellow]",
            c.issued_at,
        )
    console.print(table)


# =============================================================================
# ACCESS
# =============================================================================


@app.command(name="grant-access")
def grant_access(
    certificate_id: int = typer.Argument(..., help="Certificate ID"),
    viewer: str = typer.Argument(..., help="Viewer wallet address"),
    student: str = typer.Option(..., "--student", "-s", help="Owning student address"),
    hours: int | None = typer.Option(None, "--hours", help="Grant duration in hours"),
) -> None:
    """Let a viewer read a certificate for a limited time."""
    svc = get_services()
    duration = hours if hours is not None else svc.config.access.default_duration_hours
    try:
        student_id = svc.directory.require_student_id(student)
        grant = svc.access.grant(certificate_id, viewer, student_id, duration)
    except ECertifyError as e:
        _fail(e)
    console.print(f"[green]✓ Access granted[/green] [dim]until:[/dim] {grant.expires_at}")


@app.command(name="access-logs")
def access_logs(
    certificate_id: int = typer.Argument(..., help="Certificate ID"),
) -> None:
    """Show who opened a certificate, newest first."""
    svc = get_services()
    try:
        logs = svc.access.list_access_logs(certificate_id)
    except ECertifyError as e:
        _fail(e)

    if not logs:
        console.print("[yellow]No access recorded[/yellow]")
        return
    for entry in logs:
        console.print(f"  {entry.accessed_at}  {entry.viewer_address}")


# =============================================================================
# TRANSFERS
# =============================================================================


@app.command(name="request-transfer")
def request_transfer(
    student: str = typer.Argument(..., help="Student address"),
    to_institute: str = typer.Argument(..., help="Destination institute address"),
) -> None:
    """Ask to move a student to another institute."""
    svc = get_services()
    try:
        current = svc.directory.get_student_by_address(student)
        to_institute_id = svc.directory.require_institute_id(to_institute)
        request = svc.transfers.request(
            current.id, current.current_institute_id, to_institute_id
        )
    except ECertifyError as e:
        _fail(e)
    console.print(f"[green]✓ Transfer requested[/green] [dim]id:[/dim] {request.id}")


@app.command(name="approve-transfer")
def approve_transfer(
    request_id: int = typer.Argument(..., help="Transfer request ID"),
    institute: str = typer.Option(..., "--institute", "-i", help="Destination institute address"),
) -> None:
    """Approve a transfer request as the destination institute."""
    svc = get_services()
    try:
        institute_id = svc.directory.require_institute_id(institute)
        request = svc.transfers.get(request_id)
        svc.transfers.approve(request_id, request.student_id, institute_id)
    except ECertifyError as e:
        _fail(e)
    console.print(f"[green]✓ Transfer {request_id} approved[/green]")


@app.command(name="decline-transfer")
def decline_transfer(
    request_id: int = typer.Argument(..., help="Transfer request ID"),
    institute: str = typer.Option(..., "--institute", "-i", help="Destination institute address"),
) -> None:
    """Decline a transfer request as the destination institute."""
    svc = get_services()
    try:
        institute_id = svc.directory.require_institute_id(institute)
        svc.transfers.decline(request_id, institute_id)
    except ECertifyError as e:
        _fail(e)
    console.print(f"[yellow]Transfer {request_id} declined[/yellow]")


@app.command()
def transfers(
    student: str = typer.Argument(..., help="Student address"),
) -> None:
    """List a student's transfer requests."""
    svc = get_services()
    try:
        student_id = svc.directory.require_student_id(student)
    except ECertifyError as e:
        _fail(e)

    rows = svc.transfers.list_for_student(student_id)
    if not rows:
        console.print("[yellow]No transfer requests[/yellow]")
        return
    for t in rows:
        console.print(
            f"  #{t.id}  {_institute_label(svc, t.from_institute_id)} → "
            f"{_institute_label(svc, t.to_institute_id)}  [bold]{t.status.value}[/bold]"
        )


# =============================================================================
# SERVER
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API with uvicorn."""
    import uvicorn

    console.print(f"[green]Serving E-Certify API on http://{host}:{port}[/green]")
    uvicorn.run("ecertify.web.api:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
