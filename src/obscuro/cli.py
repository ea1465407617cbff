"""Command-line interface for Obscuro PHI redaction.

Provides:
- `run`: Redact a PDF and write the output plus an audit JSON.
- `detect`: Dry run listing the runs that would be redacted.
- `batch`: Redact every PDF in a directory (or glob) concurrently.
- `serve`: Launch the HTTP API.
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from .audit import build_audit, write_audit
from .batch import run_batch
from .core import (
    CoreError,
    RedactionStrategy,
    RunConfig,
    StampConfig,
    detect as detect_matches,
    load_rules,
    run as run_pipeline,
)
from .redact import draw_preview

app = typer.Typer(add_completion=False, help="Obscuro PHI Redactor")


def _config(
    rules: Optional[str],
    strategy: str,
    margin: float,
    workers: int,
    categories: Optional[List[str]] = None,
) -> RunConfig:
    return RunConfig(
        margin_factor=margin,
        strategy=RedactionStrategy(strategy),
        workers=workers,
        rules_path=rules,
        categories=categories or None,
    )


@app.command()
def run(
    input: str = typer.Option(..., "--input", "-i", help="Input PDF path"),
    output: str = typer.Option(..., "--output", "-o", help="Output redacted PDF path"),
    rules: Optional[str] = typer.Option(
        None, help="Rule set name or YAML/JSON path (e.g., hipaa)"
    ),
    strategy: RedactionStrategy = typer.Option(
        RedactionStrategy.OVERLAY, help="overlay (visual only) | remove (delete text)"
    ),
    margin: float = typer.Option(1.2, help="Mark height inflation factor"),
    workers: int = typer.Option(1, help="Threads used for per-page matching"),
    category: Optional[List[str]] = typer.Option(
        None, "--category", "-c", help="Only redact these categories (repeatable)"
    ),
    stamp_text: str = typer.Option("HIPAA COMPLIANT", help="Stamp text for every page"),
    audit: bool = typer.Option(True, "--audit/--no-audit", help="Write <output>.audit.json"),
):
    """Redact PHI from a PDF and write the redacted PDF.

    Parameters
    ----------
    input:
        Input PDF path.
    output:
        Output PDF path for the redacted document.
    rules:
        Builtin rule set name or rule file path; defaults to the builtin rules.
    strategy:
        ``overlay`` paints marks only; ``remove`` also deletes underlying text.
    margin:
        Factor applied to each mark's height.
    """
    src = Path(input)
    if not src.exists():
        print(f"[red]Input not found:[/red] {input}")
        raise typer.Exit(code=2)
    cfg = _config(rules, strategy.value, margin, workers, category)
    data = src.read_bytes()
    try:
        result = run_pipeline(data, stamp=StampConfig(text=stamp_text), cfg=cfg)
    except CoreError as exc:
        print(f"[red]Redaction failed ({exc.kind}):[/red] {exc}")
        raise typer.Exit(code=1)

    out = Path(output)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.output or b"")
    print(f"[green]Redacted PDF:[/green] {output} ({len(result.marks)} marks)")
    if result.limitation:
        print(f"[yellow]Note:[/yellow] {result.limitation}")
    if audit:
        applied = load_rules(rules)
        if cfg.categories:
            applied = applied.select(cfg.categories)
        record = build_audit(
            str(src),
            data,
            result,
            {**cfg.__dict__, "strategy": cfg.strategy.value},
            rules=applied.to_dict(),
        )
        audit_path = write_audit(out.with_suffix(".audit.json"), record)
        print(f"[green]Audit:[/green] {audit_path}")


@app.command()
def detect(
    input: str = typer.Option(..., "--input", "-i", help="Input PDF path"),
    rules: Optional[str] = typer.Option(None, help="Rule set name or YAML/JSON path"),
    show_text: bool = typer.Option(
        False, help="Print matched run text (may expose PHI in the terminal)"
    ),
    preview_dir: Optional[str] = typer.Option(
        None, help="Write PNG previews with outlined marks to this directory"
    ),
):
    """List runs that would be redacted, without writing a PDF."""
    src = Path(input)
    if not src.exists():
        print(f"[red]Input not found:[/red] {input}")
        raise typer.Exit(code=2)
    data = src.read_bytes()
    try:
        result = detect_matches(data, cfg=_config(rules, "overlay", 1.2, 1))
    except CoreError as exc:
        print(f"[red]Detection failed ({exc.kind}):[/red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title=f"{src.name}: {len(result.matches)} matches")
    table.add_column("Page", justify="right")
    table.add_column("Category")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    table.add_column("w", justify="right")
    table.add_column("h", justify="right")
    if show_text:
        table.add_column("Text")
    for m, mark in zip(result.matches, result.marks):
        row = [
            str(m.page_index),
            m.category,
            f"{mark.x:.1f}",
            f"{mark.y:.1f}",
            f"{mark.width:.1f}",
            f"{mark.height:.1f}",
        ]
        if show_text:
            row.append(m.text)
        table.add_row(*row)
    Console().print(table)

    if preview_dir:
        target = Path(preview_dir)
        target.mkdir(parents=True, exist_ok=True)
        for idx, png in enumerate(draw_preview(data, result.marks), start=1):
            (target / f"page_{idx:04d}.png").write_bytes(png)
        print(f"[green]Previews:[/green] {target}")


@app.command()
def batch(
    input_dir: str = typer.Option(..., help="Input directory or glob pattern"),
    output_dir: str = typer.Option(..., help="Output directory for PDFs"),
    workers: int = typer.Option(2, help="Concurrent worker processes"),
    rules: Optional[str] = typer.Option(None, help="Rule set name or YAML/JSON path"),
    strategy: RedactionStrategy = typer.Option(RedactionStrategy.OVERLAY),
    margin: float = typer.Option(1.2, help="Mark height inflation factor"),
):
    """Batch process multiple PDFs concurrently."""
    from glob import glob

    files: List[str] = []
    p = Path(input_dir)
    if p.exists() and p.is_dir():
        files = sorted(str(fp) for fp in p.iterdir() if fp.suffix.lower() == ".pdf")
    else:
        files = sorted(glob(input_dir))
    if not files:
        print("[red]No inputs found[/red]")
        raise typer.Exit(code=1)

    cfg = _config(rules, strategy.value, margin, 1)
    items = run_batch(files, output_dir, cfg, workers=workers)
    done = [i for i in items if i.ok]
    print(f"[green]Completed {len(done)} files[/green]")
    failed = [i for i in items if not i.ok]
    for item in failed:
        print(f"[red]Failed:[/red] {item.input} ({item.error})")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(
        None, help="Host to bind (use 0.0.0.0 only when intentional)"
    ),
    port: Optional[int] = typer.Option(None, help="Port for the API server"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Launch the FastAPI service."""
    from .api import run_server

    run_server(host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
