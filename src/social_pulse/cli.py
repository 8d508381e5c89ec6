"""CLI entry point for social-pulse."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from social_pulse import ALL, __version__
from social_pulse.aggregate import (
    aggregate,
    filter_records,
    latest_period,
    owner_options,
    period_options,
    platform_options,
    search_records,
    sort_records,
)
from social_pulse.columns import KEYWORDS, build_keyword_table
from social_pulse.insights import API_KEY_ENV, DEFAULT_MODEL, generate_insights
from social_pulse.io import load_workbook, write_json
from social_pulse.models import (
    AggregationResult,
    FilterSpec,
    IngestReport,
    NormalizedRecord,
    RunManifest,
)
from social_pulse.pipeline import NO_DATA_MESSAGE, parse_workbook
from social_pulse.qc import write_qc_report
from social_pulse.report import dashboard_kpis, write_report
from social_pulse.utils import sha256_file, utcnow_iso

app = typer.Typer(
    name="spulse",
    help="social-pulse — Normalize monthly social-media spreadsheets into report-ready stats.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


def _fmt(value: float) -> str:
    return f"{value:,.0f}" if float(value).is_integer() else f"{value:,.2f}"


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"social-pulse v{__version__}")
        raise typer.Exit()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.strip().upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _load_profile_lines(profile: Path | None) -> list[str]:
    """Return the ``role=fragment`` lines of a keyword profile file."""
    if not profile:
        return []
    if not profile.exists():
        raise ValueError(f"Keyword profile not found: {profile} (expected lines like followers=订阅)")
    if profile.is_dir():
        raise ValueError(f"Keyword profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read keyword profile {profile}: {exc}") from exc

    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def _parse_keyword_map(raw: list[str]) -> dict[str, list[str]]:
    """Parse ``role=fragment`` pairs into ``{role: [fragments]}``."""
    extra: dict[str, list[str]] = {}
    for item in raw:
        if "=" not in item:
            raise ValueError(f"Invalid keyword entry: {item!r}  (expected role=fragment)")
        role, fragment = (part.strip() for part in item.split("=", 1))
        if not role or not fragment:
            raise ValueError("Keyword entries must have non-empty role and fragment (role=fragment)")
        extra.setdefault(role.lower(), []).append(fragment)
    return extra


def _keyword_table(
    profile: Path | None, extra_keywords: list[str] | None
) -> dict[str, tuple[str, ...]]:
    raw = _load_profile_lines(profile) + (extra_keywords or [])
    if not raw:
        return dict(KEYWORDS)
    return build_keyword_table(_parse_keyword_map(raw))


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    run_id: str,
    created_at: str,
    ingest: IngestReport,
    *,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        pass

    manifest = RunManifest(
        run_id=run_id,
        version=__version__,
        input_path=str(input_file.resolve()),
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        rows_in=ingest.rows_in,
        rows_out=ingest.rows_out,
        sha256=sha256,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _fail(
    out_dir: Path,
    input_file: Path,
    created_at: str,
    message: str,
    *,
    ingest: IngestReport | None = None,
    error_code: int = 2,
) -> NoReturn:
    """Write failure QC + manifest, report *message* and exit with *error_code*."""
    if ingest is None:
        ingest = IngestReport(warnings=[message])
    qc_path = write_qc_report(out_dir, ingest)
    manifest_path = _write_manifest(
        out_dir,
        input_file,
        created_at,
        created_at,
        ingest,
        status="failed",
        error_code=error_code,
        error_message=message,
    )
    _err(message)
    console.print(f"  QC report -> {qc_path}")
    console.print(f"  Manifest  -> {manifest_path}")
    raise typer.Exit(code=error_code)


def _ingest(
    input_file: Path,
    out_dir: Path,
    created_at: str,
    keywords: dict[str, tuple[str, ...]],
) -> tuple[list[NormalizedRecord], IngestReport]:
    try:
        sheets = load_workbook(input_file)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _fail(out_dir, input_file, created_at, str(exc))
    return parse_workbook(sheets, keywords=keywords)


def _print_ingest_warnings(ingest: IngestReport) -> None:
    for w in ingest.warnings:
        console.print(f"  [yellow]![/yellow] {w}")


def _print_result(result: AggregationResult) -> None:
    kpis = RichTable(title="Key Metrics", show_lines=False)
    kpis.add_column("Metric", style="bold")
    kpis.add_column("Value", justify="right")
    for label, value in dashboard_kpis(result).items():
        kpis.add_row(label, _fmt(value) if isinstance(value, (int, float)) else str(value))
    console.print(kpis)

    platforms = RichTable(title="Platform Breakdown")
    platforms.add_column("Platform", style="bold")
    platforms.add_column("Followers", justify="right")
    platforms.add_column("Reach", justify="right")
    platforms.add_column("Growth", justify="right")
    for p in result.platform_breakdown:
        platforms.add_row(p.platform, _fmt(p.followers), _fmt(p.reach), _fmt(p.growth))
    console.print(platforms)


def _describe_spec(spec: FilterSpec) -> str:
    return (
        f"platform={spec.platform}, owner={spec.owner}, "
        f"from={spec.period_start}, to={spec.period_end}"
    )


def _warn_unknown_selection(records: list[NormalizedRecord], spec: FilterSpec) -> None:
    selections = [
        ("platform", spec.platform, set(platform_options(records))),
        ("owner", spec.owner, set(owner_options(records))),
    ]
    for kind, value, known in selections:
        if value != ALL and value not in known:
            console.print(f"  [yellow]![/yellow] Unknown {kind} {value!r}; it matches nothing")

    # Unknown period labels resolve to an open bound in filter_records.
    periods = {p.label for p in period_options(records)}
    for value in (spec.period_start, spec.period_end):
        if value != ALL and value not in periods:
            console.print(f"  [yellow]![/yellow] Unknown period {value!r}; bound ignored")


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level",
        envvar="SPULSE_LOG_LEVEL",
        help="Logging level for library diagnostics (DEBUG, INFO, WARNING, ...).",
    ),
) -> None:
    """social-pulse CLI."""
    _configure_logging(log_level)


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the monthly report workbook (XLSX, XLS or CSV).",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for report + summary + QC + manifest.",
    ),
    platform: str = typer.Option(ALL, "--platform", "-p", help="Only this platform."),
    owner: str = typer.Option(ALL, "--owner", help="Only pages run by this owner."),
    period_start: str = typer.Option(ALL, "--from", help="First period (sheet label)."),
    period_end: str = typer.Option(ALL, "--to", help="Last period (sheet label)."),
    keyword: list[str] | None = typer.Option(
        None, "--keyword", "-k",
        help="Extra header keyword: role=fragment. E.g. --keyword followers=订阅",
    ),
    keywords_profile: Path | None = typer.Option(
        None, "--keywords",
        help="Keyword profile file (role=fragment lines).",
    ),
    top: int = typer.Option(10, "--top", min=1, help="Rows on the Top_Pages sheet."),
    search: str = typer.Option(
        "", "--search", "-s",
        help="Only list Data-sheet rows matching this text (page, owner, category, period).",
    ),
    insights: bool = typer.Option(
        False, "--insights/--no-insights",
        help="Ask the language model for a narrative summary.",
    ),
    api_key: str | None = typer.Option(
        None, "--api-key",
        envvar=API_KEY_ENV,
        help="API key for the narrative summary.",
        show_default=False,
    ),
    model: str = typer.Option(
        DEFAULT_MODEL, "--model",
        envvar="SPULSE_MODEL",
        help="Model used for the narrative summary.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Ingest a workbook, aggregate under the filter and write the report."""
    echo = _printer(quiet)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    spec = FilterSpec(
        platform=platform, owner=owner, period_start=period_start, period_end=period_end
    )
    try:
        keywords = _keyword_table(keywords_profile, keyword)
    except ValueError as exc:
        _fail(out_dir, input_file, created_at, str(exc))

    if not quiet:
        console.print(Panel(
            f"[bold]social-pulse[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Pipeline Start", border_style="blue",
        ))
        console.print(f"  Filter: {_describe_spec(spec)}")

    # ── Load + normalize ─────────────────────────────────────────
    echo("[blue]>[/blue] Reading workbook …")
    records, ingest = _ingest(input_file, out_dir, created_at, keywords)

    try:
        qc_path = write_qc_report(out_dir, ingest)
        echo(f"  QC report -> {qc_path}")
        if not records:
            _fail(out_dir, input_file, created_at, NO_DATA_MESSAGE, ingest=ingest)

        if not quiet:
            _print_ingest_warnings(ingest)
            console.print(
                f"  {ingest.rows_out} records from {ingest.sheets_in} sheet(s), "
                f"{len(period_options(records))} period(s)"
            )
            _warn_unknown_selection(records, spec)

        # ── Aggregate ────────────────────────────────────────────
        echo("[blue]>[/blue] Aggregating …")
        filtered = filter_records(records, spec)
        listed = search_records(filtered, search)
        result = aggregate(records, spec)
        if result is None:
            echo("  [yellow]![/yellow] No data for current filter")
        elif not quiet:
            _print_result(result)

        # ── Narrative summary (optional, after totals) ───────────
        summary_text: str | None = None
        if insights and result is not None:
            echo("[blue]>[/blue] Generating insights …")
            summary_text = generate_insights(result, api_key=api_key, model=model)
            echo(Panel(summary_text, title="AI Generated Analysis", border_style="magenta"))

        # ── Artifacts ────────────────────────────────────────────
        echo("[blue]>[/blue] Writing report …")
        report_path = write_report(
            out_dir,
            sort_records(listed),
            result,
            ingest,
            spec=spec,
            insights=summary_text,
            top_n=top,
        )
        echo(f"  Report   -> {report_path}")

        summary_path = write_json(
            out_dir / "summary.json",
            {
                "filter": {
                    "platform": spec.platform,
                    "owner": spec.owner,
                    "period_start": spec.period_start,
                    "period_end": spec.period_end,
                    "search": search,
                },
                "result": result.to_dict() if result is not None else None,
                "insights": summary_text,
            },
        )
        echo(f"  Summary  -> {summary_path}")

        manifest_path = _write_manifest(out_dir, input_file, created_at, created_at, ingest)
        echo(f"  Manifest -> {manifest_path}")

        if not quiet:
            console.print(Panel(
                f"[green]Done[/green] — {len(listed)} records -> {report_path}",
                title="Pipeline Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        logger.exception("run failed")
        _fail(
            out_dir,
            input_file,
            created_at,
            f"Unexpected internal error: {exc}",
            ingest=IngestReport(
                rows_in=ingest.rows_in, rows_out=0, dropped_rows=ingest.rows_in,
                warnings=[*ingest.warnings, f"Unexpected internal error: {exc}"],
            ),
            error_code=1,
        )


# ── validate command ─────────────────────────────────────────────


@app.command()
def validate(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the monthly report workbook (XLSX, XLS or CSV).",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for QC + manifest.",
    ),
    keyword: list[str] | None = typer.Option(
        None, "--keyword", "-k",
        help="Extra header keyword: role=fragment.",
    ),
    keywords_profile: Path | None = typer.Option(
        None, "--keywords",
        help="Keyword profile file (role=fragment lines).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes QC + manifest.",
    ),
) -> None:
    """Check that a workbook yields records, without aggregating.

    Writes qc_report.json + run_manifest.json only.
    Exit 0 = OK, exit 2 = unreadable workbook or no valid data.
    """
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        keywords = _keyword_table(keywords_profile, keyword)
    except ValueError as exc:
        _fail(out_dir, input_file, created_at, str(exc))

    if not quiet:
        console.print(Panel(
            f"[bold]social-pulse[/bold] v{__version__}  [dim]validate mode[/dim]\n"
            f"Input: {input_file}",
            title="Validate", border_style="cyan",
        ))

    records, ingest = _ingest(input_file, out_dir, created_at, keywords)
    if not records:
        _fail(out_dir, input_file, created_at, NO_DATA_MESSAGE, ingest=ingest)

    qc_path = write_qc_report(out_dir, ingest)
    manifest_path = _write_manifest(out_dir, input_file, created_at, created_at, ingest)

    if not quiet:
        tbl = RichTable(title="Validation Summary", show_lines=True)
        tbl.add_column("Check", style="bold")
        tbl.add_column("Result")
        tbl.add_row("Sheets", str(ingest.sheets_in))
        tbl.add_row("Rows in", str(ingest.rows_in))
        tbl.add_row("Records", str(ingest.rows_out))
        tbl.add_row("Dropped", str(ingest.dropped_rows))
        tbl.add_row("Periods", ", ".join(p.label for p in period_options(records)))
        for w in ingest.warnings:
            tbl.add_row("Warning", f"[yellow]{w}[/yellow]")
        tbl.add_row("Status", "[green]PASS[/green]")
        console.print(tbl)
    console.print(f"  QC       -> {qc_path}")
    console.print(f"  Manifest -> {manifest_path}")


# ── options command ──────────────────────────────────────────────


@app.command()
def options(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the monthly report workbook (XLSX, XLS or CSV).",
        exists=True, readable=True,
    ),
    keyword: list[str] | None = typer.Option(
        None, "--keyword", "-k",
        help="Extra header keyword: role=fragment.",
    ),
    keywords_profile: Path | None = typer.Option(
        None, "--keywords",
        help="Keyword profile file (role=fragment lines).",
    ),
) -> None:
    """List the platforms, owners and periods available as filters."""
    try:
        keywords = _keyword_table(keywords_profile, keyword)
        sheets = load_workbook(input_file)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    records, _ingest_report = parse_workbook(sheets, keywords=keywords)
    if not records:
        _err(NO_DATA_MESSAGE)
        raise typer.Exit(code=2)

    console.print(f"[bold]Platforms:[/bold] {', '.join(platform_options(records))}")
    console.print(f"[bold]Owners:[/bold] {', '.join(owner_options(records))}")
    tbl = RichTable(title="Periods")
    tbl.add_column("Label", style="bold")
    tbl.add_column("Order", justify="right")
    tbl.add_column("Latest")
    latest = latest_period(records)
    for period in period_options(records):
        tbl.add_row(period.label, str(period.order), "yes" if period == latest else "")
    console.print(tbl)
