"""CLI entry point for sheet-mapper."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from sheet_mapper import __version__
from sheet_mapper.extractor import extract_with_report
from sheet_mapper.io import load_row_source, write_json
from sheet_mapper.mapper import MappingResult, map_records
from sheet_mapper.mapping import RecordShape, load_shape_profile
from sheet_mapper.models import DynamicRecord, QCReport, RunManifest
from sheet_mapper.qc import write_diagnostics, write_qc_report
from sheet_mapper.shapes import PERSON_SHAPE
from sheet_mapper.utils import configure_logging, sha256_file, utcnow_iso

app = typer.Typer(
    name="smap",
    help="sheet-mapper — Turn spreadsheet rows into dynamic and typed records.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

INPUT_HELP = "Path to an XLSX/XLSM or XLS spreadsheet."
OUT_DIR_HELP = "Output directory for records + QC + manifest."
QUIET_HELP = "Suppress informational output; still writes all artifacts."
VERBOSE_HELP = "Show per-row and per-field debug logging."


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheet-mapper v{__version__}")
        raise typer.Exit()


class _Run:
    """Bookkeeping shared by every command of one invocation."""

    def __init__(self, command: str, input_file: Path, out_dir: Path) -> None:
        self.command = command
        self.input_file = input_file
        self.out_dir = out_dir
        self.created_at = utcnow_iso()
        self.run_id = self.created_at
        out_dir.mkdir(parents=True, exist_ok=True)

    def write_manifest(
        self,
        qc: QCReport,
        *,
        status: str = "success",
        error_code: int | None = None,
        error_message: str = "",
    ) -> Path:
        sha256 = ""
        try:
            sha256 = sha256_file(self.input_file)
        except OSError:
            pass

        manifest = RunManifest(
            command=self.command,
            run_id=self.run_id,
            version=__version__,
            input_path=str(self.input_file.resolve()),
            output_dir=str(self.out_dir.resolve()),
            created_at_utc=self.created_at,
            rows_in=qc.rows_in,
            rows_out=qc.rows_out,
            sha256=sha256,
            status=status,
            error_code=error_code,
            error_message=error_message,
        )
        return write_json(self.out_dir / "run_manifest.json", manifest.to_dict())

    def fail(self, message: str, *, rows_in: int = 0, error_code: int = 2) -> typer.Exit:
        """Write failure artifacts, report *message* and return the exit to raise."""
        qc = QCReport(rows_in=rows_in, rows_out=0, dropped_rows=rows_in, warnings=[message])
        qc_path = write_qc_report(self.out_dir, qc)
        manifest_path = self.write_manifest(
            qc, status="failed", error_code=error_code, error_message=message
        )
        _err(message)
        console.print(f"  QC report -> {qc_path}")
        console.print(f"  Manifest  -> {manifest_path}")
        return typer.Exit(code=error_code)


def _start(run: _Run, *, quiet: bool, verbose: bool, title: str, extra: str = "") -> None:
    configure_logging(console, verbose=verbose)
    if quiet:
        return
    body = (
        f"[bold]sheet-mapper[/bold] v{__version__}  [dim]{run.command}[/dim]\n"
        f"Input:  {run.input_file}\nOutput: {run.out_dir}"
    )
    if extra:
        body += f"\n{extra}"
    console.print(Panel(body, title=title, border_style="blue"))


def _extract(run: _Run, echo: Callable[..., None]) -> tuple[list[DynamicRecord], QCReport]:
    echo("[blue]>[/blue] Reading spreadsheet …")
    try:
        source = load_row_source(run.input_file)
    except (FileNotFoundError, ValueError, OSError) as exc:
        raise run.fail(str(exc)) from exc

    echo(f"  {source.row_count} rows x {source.field_count} columns")
    if source.row_count == 0:
        raise run.fail("Input file has 0 rows.")

    records, qc = extract_with_report(source)
    echo(f"  {len(records)} records extracted")
    return records, qc


def _show_qc(qc: QCReport, *, title: str, quiet: bool) -> None:
    if quiet:
        return
    tbl = RichTable(title=title, show_lines=True)
    tbl.add_column("Check", style="bold")
    tbl.add_column("Result")
    tbl.add_row("Rows in", str(qc.rows_in))
    tbl.add_row("Rows out", str(qc.rows_out))
    tbl.add_row("Dropped", str(qc.dropped_rows))
    for w in qc.warnings:
        tbl.add_row("Warning", f"[yellow]{w}[/yellow]")
    console.print(tbl)


def _record_to_dict(record: Any) -> dict[str, Any]:
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return dataclasses.asdict(record)
    return dict(vars(record))


def _run_typed(
    run: _Run,
    shape: RecordShape[Any],
    echo: Callable[..., None],
    *,
    quiet: bool,
) -> None:
    records, extract_qc = _extract(run, echo)

    echo(f"[blue]>[/blue] Mapping to {shape.name} …")
    result: MappingResult[Any] = map_records(records, shape)
    qc = result.to_qc()
    qc.warnings[:0] = extract_qc.warnings
    if not shape.fields:
        qc.warnings.append(f"No field mappings declared for {shape.name}")

    records_path = write_json(
        run.out_dir / "records.json",
        {
            "total_rows": result.mapped_count,
            "filtered_from": result.source_count,
            "data": [_record_to_dict(r) for r in result.records],
        },
        sort_keys=False,
    )
    qc_path = write_qc_report(run.out_dir, qc)
    diagnostics_path = write_diagnostics(run.out_dir, result.diagnostics)
    manifest_path = run.write_manifest(qc)

    _show_qc(qc, title="Mapping Summary", quiet=quiet)
    echo(f"  Records     -> {records_path}")
    echo(f"  QC report   -> {qc_path}")
    echo(f"  Diagnostics -> {diagnostics_path}")
    echo(f"  Manifest    -> {manifest_path}")
    if not quiet:
        console.print(Panel(
            f"[green]Done[/green] — {result.mapped_count} of {result.source_count} "
            f"records -> {records_path}",
            title="Mapping Complete", border_style="green",
        ))


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
    """sheet-mapper CLI."""


# ── parse command ────────────────────────────────────────────────


@app.command()
def parse(
    input_file: Path = typer.Option(..., "--input", "-i", help=INPUT_HELP),
    out_dir: Path = typer.Option(Path("output"), "--out-dir", "-o", help=OUT_DIR_HELP),
    quiet: bool = typer.Option(False, "--quiet", "-q", help=QUIET_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help=VERBOSE_HELP),
) -> None:
    """Parse a sheet into header-keyed records (no schema)."""
    echo = _printer(quiet)
    run = _Run("parse", input_file, out_dir)
    _start(run, quiet=quiet, verbose=verbose, title="Parse")

    try:
        records, qc = _extract(run, echo)
        records_path = write_json(
            out_dir / "records.json",
            {"total_rows": len(records), "data": [r.to_dict() for r in records]},
            sort_keys=False,
        )
        qc_path = write_qc_report(out_dir, qc)
        manifest_path = run.write_manifest(qc)
    except typer.Exit:
        raise
    except Exception as exc:
        raise run.fail(f"Unexpected internal error: {exc}", error_code=1) from exc

    _show_qc(qc, title="Parse Summary", quiet=quiet)
    echo(f"  Records   -> {records_path}")
    echo(f"  QC report -> {qc_path}")
    echo(f"  Manifest  -> {manifest_path}")


# ── persons command ──────────────────────────────────────────────


@app.command()
def persons(
    input_file: Path = typer.Option(..., "--input", "-i", help=INPUT_HELP),
    out_dir: Path = typer.Option(Path("output"), "--out-dir", "-o", help=OUT_DIR_HELP),
    quiet: bool = typer.Option(False, "--quiet", "-q", help=QUIET_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help=VERBOSE_HELP),
) -> None:
    """Map a sheet onto person records (Name required; Name, Email, Age non-blank)."""
    echo = _printer(quiet)
    run = _Run("persons", input_file, out_dir)
    _start(run, quiet=quiet, verbose=verbose, title="Persons")
    try:
        _run_typed(run, PERSON_SHAPE, echo, quiet=quiet)
    except typer.Exit:
        raise
    except Exception as exc:
        raise run.fail(f"Unexpected internal error: {exc}", error_code=1) from exc


# ── map command ──────────────────────────────────────────────────


@app.command("map")
def map_command(
    input_file: Path = typer.Option(..., "--input", "-i", help=INPUT_HELP),
    profile: Path = typer.Option(
        ..., "--profile", "-p",
        help="Shape profile: one 'name:type=Column[, required][, keep-blank]' per line.",
    ),
    out_dir: Path = typer.Option(Path("output"), "--out-dir", "-o", help=OUT_DIR_HELP),
    quiet: bool = typer.Option(False, "--quiet", "-q", help=QUIET_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help=VERBOSE_HELP),
) -> None:
    """Map a sheet onto records described by a shape profile."""
    echo = _printer(quiet)
    run = _Run("map", input_file, out_dir)
    try:
        shape = load_shape_profile(profile)
    except ValueError as exc:
        configure_logging(console, verbose=verbose)
        raise run.fail(str(exc)) from exc

    _start(
        run, quiet=quiet, verbose=verbose, title="Map",
        extra=f"Profile: {profile} ({len(shape.fields)} fields)",
    )
    try:
        _run_typed(run, shape, echo, quiet=quiet)
    except typer.Exit:
        raise
    except Exception as exc:
        raise run.fail(f"Unexpected internal error: {exc}", error_code=1) from exc
