"""securegen — generate credentials and keep a searchable history of them.

Commands
--------
  init      Create the encrypted local vault
  register  Create an account (multi-user mode)
  login     Log in (multi-user mode)
  logout    End the current session
  whoami    Show the logged-in user
  generate  Generate a username/password pair and save it
  strength  Score a password configuration without generating
  presets   List the username pattern presets
  history   Search, filter, sort and group saved credentials
  show      Reveal one saved credential
  edit      Change the group and/or remark of a credential
  regroup   Move several credentials into one group
  delete    Remove credentials
  clear     Remove all of your credentials
  export    Write the (filtered) history to CSV
  info      Show configuration and vault metadata
"""

from __future__ import annotations

import locale
import logging
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Annotated, Iterator, Optional

import typer
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from . import __version__
from .config import Settings, build_backend
from .errors import (
    InvalidCredentials,
    NotFound,
    SecureGenError,
    TransportFailure,
    Unauthorized,
    UsernameTaken,
)
from .export import export_filename, format_timestamp, write_csv
from .generator import USERNAME_PRESETS, find_preset
from .models import DEFAULT_PATTERN, CredentialRecord, GenerateConfig
from .query import (
    DATE_PRESETS,
    SORT_KEYS,
    HistoryQuery,
    date_preset,
    run_query,
    unique_groups,
)
from .service import RecordManager
from .session import SessionContext
from .store import VaultStore
from .strength import StrengthReport, estimate_strength

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App & consoles
# ---------------------------------------------------------------------------

_THEME = Theme(
    {
        "success": "bold green",
        "warning": "bold yellow",
        "danger": "bold red",
        "muted": "dim",
        "label": "cyan",
        "highlight": "bold white",
    }
)

console = Console(theme=_THEME)
err = Console(stderr=True, theme=_THEME)

app = typer.Typer(
    name="securegen",
    help="[bold cyan]securegen[/bold cyan] — generate credentials and keep their history.",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
)

_STRENGTH_STYLES = {
    "Weak": "bold red",
    "Moderate": "bold yellow",
    "Strong": "bold blue",
    "Very Strong": "bold green",
}


@app.callback()
def _main(
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Log debug output to stderr.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err, show_path=False)],
        force=True,
    )
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.debug("System collation locale unavailable; using the C locale")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


@contextmanager
def _guard() -> Iterator[None]:
    """Turn domain failures into a red message and exit code 1."""
    try:
        yield
    except Unauthorized as exc:
        err.print(f"[danger]{escape(str(exc))}[/danger] Run [bold]securegen login[/bold] first.")
        raise typer.Exit(1) from exc
    except (InvalidCredentials, UsernameTaken, NotFound) as exc:
        err.print(f"[danger]{escape(str(exc))}[/danger]")
        raise typer.Exit(1) from exc
    except TransportFailure as exc:
        err.print(f"[danger]Storage unavailable:[/danger] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    except (SecureGenError, ValueError) as exc:
        err.print(f"[danger]{escape(str(exc))}[/danger]")
        raise typer.Exit(1) from exc


def _settings() -> Settings:
    with _guard():
        return Settings.from_env()


def _ask_master() -> str:
    return Prompt.ask("Master password", password=True, console=console)


def _session(settings: Settings) -> SessionContext:
    with _guard():
        backend = build_backend(settings, ask_master_password=_ask_master)
    return SessionContext(backend, settings.session_path if settings.is_multi_user else None)


def _manager() -> RecordManager:
    settings = _settings()
    session = _session(settings)
    logger.debug("Using %s backend, %s mode", settings.backend, "multi-user" if settings.is_multi_user else "single-user")
    if settings.is_multi_user:
        with _guard():
            session.restore()
    return RecordManager(session.auth, session, multi_user=settings.is_multi_user)


def _resolve(records: list[CredentialRecord], ref: str) -> str:
    """Full id for *ref*, which may be an unambiguous id prefix."""
    if any(r.id == ref for r in records):
        return ref
    hits = [r.id for r in records if r.id.startswith(ref)]
    if len(hits) > 1:
        err.print(f"[warning]'{ref}' matches {len(hits)} records — please give more of the id.[/warning]")
        raise typer.Exit(1)
    return hits[0] if hits else ref


def _find_record(records: list[CredentialRecord], ref: str) -> CredentialRecord:
    full = _resolve(records, ref)
    for r in records:
        if r.id == full:
            return r
    err.print(f"[danger]No record found matching '[bold]{ref}[/bold]'.[/danger]")
    raise typer.Exit(1)


def _copy(text: str, what: str) -> None:
    try:
        import pyperclip  # noqa: PLC0415

        pyperclip.copy(text)
        console.print(f"[success]{what} copied to clipboard.[/success]")
    except Exception:
        console.print("[warning]Could not access clipboard. Is pyperclip installed and configured?[/warning]")


def _strength_text(report: StrengthReport) -> Text:
    style = _STRENGTH_STYLES.get(report.label, "highlight")
    filled = report.score // 5
    bar = Text("█" * filled, style=style)
    bar.append("░" * (20 - filled), style="muted")
    bar.append(f"  {report.label} ({report.score}/100)", style=style)
    return bar


def _render_record(record: CredentialRecord, *, show_password: bool = True) -> None:
    body = Text()

    def row(label: str, value: str, style: str = "highlight") -> None:
        body.append(f"  {label:<10}", style="label")
        body.append(value + "\n", style=style)

    row("Username", record.username)
    row("Password", record.password if show_password else "••••••••••••", style="bold green" if show_password else "muted")
    if record.group:
        row("Group", record.group, style="yellow")
    if record.remark:
        row("Remark", record.remark, style="italic")
    row("Created", format_timestamp(record), style="muted")
    row("ID", record.id, style="muted")

    console.print(Panel(body, title="[bold cyan]Credential[/bold cyan]", expand=False, border_style="cyan"))


def _render_table(records: list[CredentialRecord], title: str, *, show_passwords: bool = False) -> None:
    table = Table(
        title=title,
        box=box.ROUNDED,
        header_style="bold cyan",
        show_lines=False,
        highlight=True,
        title_style="bold",
    )
    table.add_column("ID", style="muted", no_wrap=True)
    table.add_column("Created", style="muted", no_wrap=True)
    table.add_column("Username", style="bold white", min_width=14)
    table.add_column("Password", style="green" if show_passwords else "muted")
    table.add_column("Group", style="yellow")
    table.add_column("Remark", style="italic", max_width=40)

    for r in records:
        table.add_row(
            r.id[:8],
            format_timestamp(r),
            Text(r.username),
            Text(r.password) if show_passwords else "••••••••",
            Text(r.group or ""),
            Text(r.remark or ""),
        )
    console.print(table)


def _parse_day(value: Optional[str], flag: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        err.print(f"[danger]{flag} expects YYYY-MM-DD, got '{value}'.[/danger]")
        raise typer.Exit(1) from exc


def _build_query(
    search: str,
    group: str,
    start: Optional[str],
    end: Optional[str],
    date_range: Optional[str],
    sort: str,
    ascending: bool,
    grouped: bool = False,
) -> HistoryQuery:
    if sort not in SORT_KEYS:
        err.print(f"[danger]Unknown sort key '{sort}'. Use one of: {', '.join(SORT_KEYS)}.[/danger]")
        raise typer.Exit(1)
    if date_range:
        if date_range not in DATE_PRESETS:
            err.print(f"[danger]Unknown range '{date_range}'. Use one of: {', '.join(DATE_PRESETS)}.[/danger]")
            raise typer.Exit(1)
        lo, hi = date_preset(date_range)  # type: ignore[arg-type]
    else:
        lo, hi = _parse_day(start, "--from"), _parse_day(end, "--to")
    return HistoryQuery(
        search=search,
        group=group,
        date_start=lo,
        date_end=hi,
        sort_key=sort,
        sort_direction="asc" if ascending else "desc",
        view_mode="grouped" if grouped else "list",
    )


def _describe(query: HistoryQuery) -> str:
    parts = []
    if query.search:
        parts.append(f'search "{query.search}"')
    if query.group:
        parts.append(f"group {query.group}")
    if query.date_start or query.date_end:
        parts.append(f"{query.date_start or '...'} to {query.date_end or '...'}")
    return ", ".join(parts)


# Filter options shared by `history` and `export`.
SearchOpt = Annotated[str, typer.Option("--search", "-s", help="Match username, id, remark or group.")]
GroupOpt = Annotated[str, typer.Option("--group", "-g", help="Only this group (exact).")]
FromOpt = Annotated[Optional[str], typer.Option("--from", help="First day, YYYY-MM-DD.", show_default=False)]
ToOpt = Annotated[Optional[str], typer.Option("--to", help="Last day, YYYY-MM-DD.", show_default=False)]
RangeOpt = Annotated[
    Optional[str],
    typer.Option("--range", "-r", help=f"Quick date range: {', '.join(DATE_PRESETS)}.", show_default=False),
]
SortOpt = Annotated[str, typer.Option("--sort", help=f"Sort by: {', '.join(SORT_KEYS)}.")]
AscOpt = Annotated[bool, typer.Option("--asc/--desc", help="Sort direction.")]


# ---------------------------------------------------------------------------
# Account commands
# ---------------------------------------------------------------------------


@app.command()
def init() -> None:
    """Create the encrypted local vault."""
    settings = _settings()
    store = VaultStore(settings.vault, iterations=settings.kdf_iterations)

    if store.exists():
        overwrite = Confirm.ask(
            "[warning]A vault already exists at this path. Overwrite?[/warning]",
            default=False,
            console=console,
        )
        if not overwrite:
            raise typer.Exit(0)

    console.print(
        Panel(
            "[bold]Welcome to securegen[/bold]\n"
            "[muted]Choose a strong master password — it cannot be recovered if lost.[/muted]",
            title="[bold cyan]Vault Initialisation[/bold cyan]",
            border_style="cyan",
            expand=False,
        )
    )

    pw = settings.master_password or Prompt.ask("  Master password", password=True, console=console)
    if not pw:
        err.print("[danger]Master password cannot be empty.[/danger]")
        raise typer.Exit(1)
    if not settings.master_password:
        confirm = Prompt.ask("  Confirm password", password=True, console=console)
        if pw != confirm:
            err.print("[danger]Passwords do not match.[/danger]")
            raise typer.Exit(1)

    with _guard():
        store.init(pw)
    console.print(f"\n[success]Vault created →[/success] [bold]{store.path}[/bold]")


def _account_prompt(username: Optional[str], password: Optional[str]) -> tuple[str, str]:
    username = username or Prompt.ask("  Username", console=console)
    password = password or Prompt.ask("  Password", password=True, console=console)
    return username, password


@app.command()
def register(
    username: Annotated[Optional[str], typer.Option("--username", "-u", help="Account name.")] = None,
    password: Annotated[Optional[str], typer.Option("--password", "-p", help="Account password.")] = None,
) -> None:
    """Create an account and log in."""
    session = _session(_settings())
    username, password = _account_prompt(username, password)
    with _guard():
        user = session.register(username, password)
    console.print(f"[success]Welcome, [bold]{escape(user.username)}[/bold].[/success]")


@app.command()
def login(
    username: Annotated[Optional[str], typer.Option("--username", "-u", help="Account name.")] = None,
    password: Annotated[Optional[str], typer.Option("--password", "-p", help="Account password.")] = None,
) -> None:
    """Log in and remember the session."""
    session = _session(_settings())
    username, password = _account_prompt(username, password)
    with _guard():
        user = session.login(username, password)
    console.print(f"[success]Logged in as [bold]{escape(user.username)}[/bold].[/success]")


@app.command()
def logout() -> None:
    """End the current session."""
    settings = _settings()
    session = _session(settings)
    with _guard():
        if session.restore() is None:
            console.print("[muted]Not logged in.[/muted]")
            return
        session.logout()
    console.print("[success]Logged out.[/success]")


@app.command()
def whoami() -> None:
    """Show the logged-in user."""
    settings = _settings()
    if not settings.is_multi_user:
        console.print("[muted]Single-user mode: no login needed.[/muted]")
        return
    session = _session(settings)
    with _guard():
        user = session.restore()
    if user is None:
        console.print("[muted]Not logged in.[/muted]")
        raise typer.Exit(1)
    console.print(f"[highlight]{escape(user.username)}[/highlight] [muted]({user.id})[/muted]")


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _config(
    username: Optional[str],
    pattern: Optional[str],
    preset: Optional[str],
    length: int,
    no_uppercase: bool,
    no_numbers: bool,
    no_symbols: bool,
    remark: Optional[str] = None,
    group: Optional[str] = None,
) -> GenerateConfig:
    if preset:
        try:
            pattern = find_preset(preset).pattern
        except KeyError as exc:
            err.print(f"[danger]{exc.args[0]}[/danger] Run [bold]securegen presets[/bold] to list them.")
            raise typer.Exit(1) from exc
    return GenerateConfig(
        username_mode="manual" if username else "pattern",
        username=username or "",
        pattern=pattern or DEFAULT_PATTERN,
        length=length,
        use_uppercase=not no_uppercase,
        use_numbers=not no_numbers,
        use_symbols=not no_symbols,
        remark=remark,
        group=group,
    )


LengthOpt = Annotated[int, typer.Option("--length", "-l", min=4, max=64, help="Password length (4-64).")]
NoUpperOpt = Annotated[bool, typer.Option("--no-uppercase", help="Exclude A-Z.")]
NoNumbersOpt = Annotated[bool, typer.Option("--no-numbers", help="Exclude 0-9.")]
NoSymbolsOpt = Annotated[bool, typer.Option("--no-symbols", help="Exclude symbols.")]


@app.command()
def generate(
    username: Annotated[Optional[str], typer.Option("--username", "-u", help="Use this username instead of a pattern.")] = None,
    pattern: Annotated[Optional[str], typer.Option("--pattern", "-p", help="Username pattern, e.g. 'user_####'.")] = None,
    preset: Annotated[Optional[str], typer.Option("--preset", help="Named username pattern (see `presets`).")] = None,
    length: LengthOpt = 16,
    no_uppercase: NoUpperOpt = False,
    no_numbers: NoNumbersOpt = False,
    no_symbols: NoSymbolsOpt = False,
    remark: Annotated[Optional[str], typer.Option("--remark", "-n", help="Free-form note.")] = None,
    group: Annotated[Optional[str], typer.Option("--group", "-g", help="Group label.")] = None,
    copy: Annotated[bool, typer.Option("--copy", "-c", help="Copy the password to the clipboard.")] = False,
) -> None:
    """Generate a username/password pair and save it to history."""
    config = _config(username, pattern, preset, length, no_uppercase, no_numbers, no_symbols, remark, group)
    manager = _manager()
    with _guard():
        record = manager.generate(config)

    _render_record(record)
    console.print(_strength_text(estimate_strength(config)))
    if copy:
        _copy(record.password, "Password")


@app.command()
def strength(
    length: LengthOpt = 16,
    no_uppercase: NoUpperOpt = False,
    no_numbers: NoNumbersOpt = False,
    no_symbols: NoSymbolsOpt = False,
) -> None:
    """Score a password configuration without generating anything."""
    config = _config(None, None, None, length, no_uppercase, no_numbers, no_symbols)
    console.print(_strength_text(estimate_strength(config)))


@app.command()
def presets() -> None:
    """List the username pattern presets."""
    table = Table(box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Preset", style="bold white")
    table.add_column("Pattern", style="yellow")
    table.add_column("Example", style="muted")
    for p in USERNAME_PRESETS:
        table.add_row(p.label, p.pattern, p.example)
    console.print(table)
    console.print("[muted]{adjective} {noun} {number} are words / 0-999; # is a digit, ? a letter.[/muted]")


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@app.command()
def history(
    search: SearchOpt = "",
    group: GroupOpt = "",
    start: FromOpt = None,
    end: ToOpt = None,
    date_range: RangeOpt = None,
    sort: SortOpt = "created_at",
    ascending: AscOpt = False,
    grouped: Annotated[bool, typer.Option("--grouped", help="Group the rows by category.")] = False,
    show_passwords: Annotated[bool, typer.Option("--show-passwords", help="Display passwords in plain text.")] = False,
    groups: Annotated[bool, typer.Option("--groups", help="Only list the group names in use.")] = False,
) -> None:
    """Search, filter, sort and group saved credentials."""
    query = _build_query(search, group, start, end, date_range, sort, ascending, grouped)
    manager = _manager()
    with _guard():
        records = manager.history()

    if groups:
        for name in unique_groups(records):
            console.print(f"  [yellow]{escape(name)}[/yellow]")
        return

    view = run_query(records, query)
    if not view.records:
        console.print("[muted]No credentials match your query.[/muted]")
        return

    filters = _describe(query)
    suffix = f" — {escape(filters)}" if filters else ""
    if view.groups is None:
        _render_table(view.records, f"History ({len(view.records)} of {len(records)}){suffix}", show_passwords=show_passwords)
    else:
        for name, members in view.groups.items():
            _render_table(members, f"{escape(name)} ({len(members)})", show_passwords=show_passwords)


@app.command()
def show(
    record_id: Annotated[str, typer.Argument(help="Record id or id prefix.")],
    copy: Annotated[bool, typer.Option("--copy", "-c", help="Copy the password to the clipboard.")] = False,
    copy_username: Annotated[bool, typer.Option("--copy-username", help="Copy the username to the clipboard.")] = False,
) -> None:
    """Reveal one saved credential."""
    manager = _manager()
    with _guard():
        records = manager.history()
    record = _find_record(records, record_id)
    _render_record(record)
    if copy:
        _copy(record.password, "Password")
    elif copy_username:
        _copy(record.username, "Username")


@app.command()
def edit(
    record_id: Annotated[str, typer.Argument(help="Record id or id prefix.")],
    group: Annotated[Optional[str], typer.Option("--group", "-g", help="New group ('' clears it).")] = None,
    remark: Annotated[Optional[str], typer.Option("--remark", "-n", help="New remark ('' clears it).")] = None,
) -> None:
    """Change the group and/or remark of a credential."""
    if group is None and remark is None:
        console.print("[muted]No changes made.[/muted]")
        return
    manager = _manager()
    with _guard():
        full_id = _resolve(manager.history(), record_id)
        manager.update(full_id, group=group, remark=remark)
    console.print(f"[success]Record [bold]{full_id[:8]}[/bold] updated.[/success]")


@app.command()
def regroup(
    record_ids: Annotated[list[str], typer.Argument(help="Record ids or id prefixes.")],
    group: Annotated[str, typer.Option("--group", "-g", help="Target group ('' removes the group).")],
) -> None:
    """Move several credentials into one group. Unknown ids are skipped."""
    manager = _manager()
    with _guard():
        records = manager.history()
        ids = [_resolve(records, ref) for ref in record_ids]
        count = manager.batch_update(ids, group)
    console.print(f"[success]{count} of {len(ids)} record(s) updated.[/success]")


@app.command()
def delete(
    record_ids: Annotated[list[str], typer.Argument(help="Record ids or id prefixes.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Permanently delete credentials. Unknown ids are ignored."""
    manager = _manager()
    with _guard():
        records = manager.history()
    ids = [_resolve(records, ref) for ref in record_ids]

    if not yes:
        confirmed = Confirm.ask(
            f"  Delete {len(ids)} record(s)? [muted]This cannot be undone.[/muted]",
            default=False,
            console=console,
        )
        if not confirmed:
            raise typer.Exit(0)

    with _guard():
        count = manager.batch_delete(ids)
    console.print(f"[danger]{count} record(s) deleted.[/danger]")


@app.command()
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Remove all of your saved credentials."""
    manager = _manager()
    if not yes:
        confirmed = Confirm.ask(
            "  Delete [bold]all[/bold] of your history? [muted]This cannot be undone.[/muted]",
            default=False,
            console=console,
        )
        if not confirmed:
            raise typer.Exit(0)
    with _guard():
        count = manager.clear()
    console.print(f"[danger]History cleared ({count} record(s)).[/danger]")


@app.command("export")
def export_cmd(
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output file (default: securegen_export_<date>.csv).")] = None,
    search: SearchOpt = "",
    group: GroupOpt = "",
    start: FromOpt = None,
    end: ToOpt = None,
    date_range: RangeOpt = None,
    sort: SortOpt = "created_at",
    ascending: AscOpt = False,
) -> None:
    """Write the filtered, sorted history to CSV (passwords are not included)."""
    query = _build_query(search, group, start, end, date_range, sort, ascending)
    manager = _manager()
    with _guard():
        view = run_query(manager.history(), query)
        path = write_csv(view.records, output or Path(export_filename()))
    console.print(f"[success]Exported {len(view.records)} record(s) →[/success] [bold]{path}[/bold]")


@app.command()
def info() -> None:
    """Show configuration and vault metadata."""
    settings = _settings()

    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Version", __version__)
    table.add_row("Backend", settings.backend)
    table.add_row("Mode", "multi-user" if settings.is_multi_user else "single-user")
    if settings.backend == "remote":
        table.add_row("API URL", settings.api_url)
    elif settings.backend == "local":
        path = settings.vault
        table.add_row("Vault path", str(path))
        table.add_row("Vault exists", "[green]yes[/green]" if path.exists() else "[red]no[/red]")
        if path.exists():
            table.add_row("Vault size", f"{path.stat().st_size / 1024:.1f} KB")
            if not settings.is_multi_user:
                with _guard():
                    count = len(_manager().history())
                table.add_row("Credentials", str(count))

    console.print(Panel(table, title="[bold cyan]securegen info[/bold cyan]", border_style="cyan", expand=False))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    app()


if __name__ == "__main__":
    main()
