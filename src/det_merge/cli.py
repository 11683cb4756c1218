"""CLI entry point for det-merge."""

from __future__ import annotations

import zipfile
from collections.abc import Callable
from pathlib import Path

import typer
from openpyxl.utils.exceptions import InvalidFileException
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table as RichTable

from det_merge import __version__
from det_merge.audit import write_changes_csv, write_merge_report
from det_merge.engine import check_workbooks, merge_workbooks
from det_merge.errors import (
    TEMPLATE_MISMATCH_MESSAGE,
    EmptyInputError,
    MergeError,
    TemplateMismatchError,
)
from det_merge.io import read_blob, write_bytes, write_json
from det_merge.models import Compatibility, MergeOptions, MergeReport, RunManifest
from det_merge.report import write_audit_workbook
from det_merge.utils import merged_output_name, sha256_bytes, utcnow_iso

app = typer.Typer(
    name="detmerge",
    help="det-merge — Fold new DET field data into an accumulating Master workbook.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

PROFILE_KEYS: dict[str, str] = {
    "header_row": "header_row",
    "template_row": "template_name_row",
    "template_col": "template_name_col",
}

# Failures that come from the inputs rather than from det-merge itself.
_INPUT_ERRORS = (
    MergeError,
    FileNotFoundError,
    ValueError,
    OSError,
    zipfile.BadZipFile,
    InvalidFileException,
)


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"det-merge v{__version__}")
        raise typer.Exit()


def _load_profile(profile: Path | None) -> dict[str, int]:
    """Return ``{option_name: value}`` from a ``key=value`` profile file."""
    if not profile:
        return {}
    if not profile.exists():
        raise ValueError(f"Profile not found: {profile} (expected lines like header_row=6)")
    if profile.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {profile}: {exc}") from exc

    settings: dict[str, int] = {}
    for line_no, line in enumerate(text.splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise ValueError(f"Invalid profile line {line_no}: {stripped!r} (expected key=value)")
        key, raw = (part.strip() for part in stripped.split("=", 1))
        key = key.lower()
        if key not in PROFILE_KEYS:
            known = ", ".join(sorted(PROFILE_KEYS))
            raise ValueError(f"Unknown profile key {key!r} on line {line_no} (use {known})")
        try:
            settings[PROFILE_KEYS[key]] = int(raw)
        except ValueError as exc:
            raise ValueError(f"Profile value for {key!r} must be an integer, got {raw!r}") from exc
    return settings


def _resolve_settings(
    profile: Path | None,
    *,
    header_row: int | None,
    template_row: int | None,
    template_col: int | None,
) -> dict[str, int]:
    """Merge profile values with explicit options; options win."""
    settings = _load_profile(profile)
    overrides = {
        "header_row": header_row,
        "template_name_row": template_row,
        "template_name_col": template_col,
    }
    for name, value in overrides.items():
        if value is not None:
            settings[name] = value
    return settings


def _build_options(settings: dict[str, int]) -> MergeOptions:
    if "header_row" not in settings:
        raise ValueError("A header row is required: pass --header-row or set header_row in --profile")
    return MergeOptions(
        header_row=settings["header_row"],
        template_name_row=settings.get("template_name_row", 1),
        template_name_col=settings.get("template_name_col", 1),
    )


def _describe_failure(exc: BaseException) -> str:
    if isinstance(exc, (zipfile.BadZipFile, InvalidFileException)):
        return f"Could not read workbook: {exc}"
    return str(exc)


def _write_manifest(
    out_dir: Path,
    *,
    det_file: Path,
    master_file: Path,
    run_id: str,
    created_at: str,
    det_blob: bytes | None = None,
    master_blob: bytes | None = None,
    output_path: Path | None = None,
    report: MergeReport | None = None,
    header_row: int | None = None,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    manifest = RunManifest(
        version=__version__,
        run_id=run_id,
        created_at_utc=created_at,
        det_path=str(det_file.resolve()),
        master_path=str(master_file.resolve()),
        output_path=str(output_path.resolve()) if output_path else "",
        det_sha256=sha256_bytes(det_blob) if det_blob is not None else "",
        master_sha256=sha256_bytes(master_blob) if master_blob is not None else "",
        header_row=report.header_row if report else header_row,
        cells_overwritten=report.cells_overwritten if report else 0,
        cells_filled=report.cells_filled if report else 0,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _compatibility_table(
    det_file: Path,
    master_file: Path,
    template_row: int,
    template_col: int,
    compatibility: Compatibility,
) -> RichTable:
    tbl = RichTable(title="Compatibility Check", show_lines=True)
    tbl.add_column("Check", style="bold")
    tbl.add_column(f"DET ({det_file.name})")
    tbl.add_column(f"Master ({master_file.name})")
    tbl.add_column("Result")

    def _verdict(ok: bool) -> str:
        return "[green]match[/green]" if ok else "[red]differs[/red]"

    tbl.add_row("Rows", str(compatibility.det_rows), str(compatibility.master_rows), "")
    tbl.add_row(
        "Columns",
        str(compatibility.det_columns),
        str(compatibility.master_columns),
        _verdict(compatibility.columns_match),
    )
    tbl.add_row(
        f"Template (R{template_row}C{template_col})",
        escape(repr(compatibility.det_template)),
        escape(repr(compatibility.master_template)),
        _verdict(compatibility.templates_match),
    )
    status = "[green]PASS[/green]" if compatibility.compatible else "[red]FAIL[/red]"
    tbl.add_row("Status", "", "", status)
    return tbl


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """det-merge CLI."""


# ── merge command ────────────────────────────────────────────────


@app.command()
def merge(
    det_file: Path = typer.Option(
        ..., "--det", "-d",
        help="Path to the DET workbook with newly collected data.",
        exists=True, readable=True,
    ),
    master_file: Path = typer.Option(
        ..., "--master", "-m",
        help="Path to the Master workbook that accumulates all data.",
        exists=True, readable=True,
    ),
    header_row: int | None = typer.Option(
        None, "--header-row", "-H",
        help="First data row; rows above it are parameters refreshed from DET.",
    ),
    template_row: int | None = typer.Option(
        None, "--template-row",
        help="Row of the template-name cell (default 1).",
    ),
    template_col: int | None = typer.Option(
        None, "--template-col",
        help="Column of the template-name cell (default 1).",
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file with header_row/template_row/template_col lines.",
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for the merged workbook, report and manifest.",
    ),
    output_name: str | None = typer.Option(
        None, "--output",
        help="File name of the merged workbook (default: <master>_merged.<ext>).",
    ),
    audit: bool = typer.Option(
        False, "--audit",
        help="Also write Merge_Audit.xlsx and merge_changes.csv.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Merge a DET workbook into a copy of the Master workbook."""
    echo = _printer(quiet)
    created_at = utcnow_iso()
    run_id = created_at
    out_dir.mkdir(parents=True, exist_ok=True)

    def _fail(message: str, *, code: int, **extra: object) -> None:
        manifest_path = _write_manifest(
            out_dir,
            det_file=det_file,
            master_file=master_file,
            run_id=run_id,
            created_at=created_at,
            status="failed",
            error_code=code,
            error_message=message,
            **extra,  # type: ignore[arg-type]
        )
        _err(message)
        console.print(f"  Manifest -> {manifest_path}")
        raise typer.Exit(code=code)

    try:
        options = _build_options(
            _resolve_settings(
                profile,
                header_row=header_row,
                template_row=template_row,
                template_col=template_col,
            )
        )
    except (TypeError, ValueError) as exc:
        _fail(str(exc), code=2, header_row=header_row)
        return

    output_path = out_dir / (output_name or merged_output_name(master_file))

    if not quiet:
        console.print(Panel(
            f"[bold]det-merge[/bold] v{__version__}\n"
            f"DET:    {det_file}\nMaster: {master_file}\nOutput: {output_path}",
            title="Merge Start", border_style="blue",
        ))
        if profile:
            console.print(f"  Using profile: {profile}")
        console.print(
            f"  Header row: {options.header_row}, "
            f"template cell: R{options.template_name_row}C{options.template_name_col}"
        )

    # ── Load ─────────────────────────────────────────────────────
    echo("[blue]>[/blue] Loading workbooks …")
    try:
        det_blob = read_blob(det_file)
        master_blob = read_blob(master_file)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _fail(str(exc), code=2, header_row=options.header_row)
        return

    try:
        # ── Merge ────────────────────────────────────────────────
        echo("[blue]>[/blue] Merging DET into Master …")
        try:
            result = merge_workbooks(det_blob, master_blob, options)
        except _INPUT_ERRORS as exc:
            if isinstance(exc, TemplateMismatchError) and not quiet:
                console.print("  Hint: run 'detmerge check' to compare both files")
            elif isinstance(exc, EmptyInputError) and not quiet:
                console.print("  Hint: both workbooks need data on their first sheet")
            _fail(
                _describe_failure(exc),
                code=2,
                det_blob=det_blob,
                master_blob=master_blob,
                header_row=options.header_row,
            )
            return

        report = result.report
        echo(
            f"  {report.end_row} rows x {report.end_column} columns, "
            f"template {report.template_name!r}"
        )
        echo(
            f"  {report.cells_overwritten} parameter cells refreshed, "
            f"{report.cells_filled} blank cells filled, "
            f"{report.cells_preserved} Master values kept"
        )

        # ── Write artifacts ──────────────────────────────────────
        echo(f"[blue]>[/blue] Writing {output_path.name} …")
        write_bytes(output_path, result.content)
        echo(f"  Merged   -> {output_path}")

        report_path = write_merge_report(out_dir, report)
        echo(f"  Report   -> {report_path}")

        if audit:
            audit_path = write_audit_workbook(
                out_dir, report, det_name=det_file.name, master_name=master_file.name
            )
            csv_path = write_changes_csv(out_dir, report)
            echo(f"  Audit    -> {audit_path}")
            echo(f"  Changes  -> {csv_path}")

        manifest_path = _write_manifest(
            out_dir,
            det_file=det_file,
            master_file=master_file,
            run_id=run_id,
            created_at=created_at,
            det_blob=det_blob,
            master_blob=master_blob,
            output_path=output_path,
            report=report,
        )
        echo(f"  Manifest -> {manifest_path}")

        if not quiet:
            console.print(Panel(
                f"[green]Done[/green] — {report.cells_written} cells written -> {output_path}",
                title="Merge Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(
            f"Unexpected internal error: {exc}",
            code=1,
            det_blob=det_blob,
            master_blob=master_blob,
            header_row=options.header_row,
        )


# ── check command ────────────────────────────────────────────────


@app.command()
def check(
    det_file: Path = typer.Option(
        ..., "--det", "-d",
        help="Path to the DET workbook.",
        exists=True, readable=True,
    ),
    master_file: Path = typer.Option(
        ..., "--master", "-m",
        help="Path to the Master workbook.",
        exists=True, readable=True,
    ),
    template_row: int | None = typer.Option(
        None, "--template-row",
        help="Row of the template-name cell (default 1).",
    ),
    template_col: int | None = typer.Option(
        None, "--template-col",
        help="Column of the template-name cell (default 1).",
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file with template_row/template_col lines.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Only print the verdict.",
    ),
) -> None:
    """Check that DET and Master can be merged, without writing anything.

    Exit 0 = compatible, exit 2 = mismatch or unreadable input.
    """
    try:
        settings = _resolve_settings(
            profile, header_row=None, template_row=template_row, template_col=template_col
        )
        # header_row is irrelevant here; 1 keeps the options valid
        options = MergeOptions(
            header_row=1,
            template_name_row=settings.get("template_name_row", 1),
            template_name_col=settings.get("template_name_col", 1),
        )
        compatibility = check_workbooks(
            read_blob(det_file),
            read_blob(master_file),
            options.template_name_row,
            options.template_name_col,
        )
    except _INPUT_ERRORS as exc:
        _err(_describe_failure(exc))
        raise typer.Exit(code=2)

    if not quiet:
        console.print(Panel(
            f"[bold]det-merge[/bold] v{__version__}  [dim]check mode[/dim]\n"
            f"DET:    {det_file}\nMaster: {master_file}",
            title="Check", border_style="cyan",
        ))
        console.print(_compatibility_table(
            det_file,
            master_file,
            options.template_name_row,
            options.template_name_col,
            compatibility,
        ))

    if not compatibility.compatible:
        _err(TEMPLATE_MISMATCH_MESSAGE)
        raise typer.Exit(code=2)
    console.print("[green]ok[/green] DET and Master are compatible")
