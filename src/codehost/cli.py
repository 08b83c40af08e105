"""Command line interface for codehost."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from codehost.config import AppConfig
from codehost.index.discover import discover
from codehost.index.service import CodeService
from codehost.mod.module import ModulePathError, check_path
from codehost.vcs.history import list_master_commits
from codehost.web.app import create_app

console = Console()
app = typer.Typer(help="codehost - Go code and git hosting for a store of bare repositories")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _resolve_repos_dir(repos_dir: Optional[Path]) -> Path:
    config = AppConfig(repos_dir=repos_dir)
    resolved = config.resolve_repos_dir(Path.cwd())
    if not resolved.is_dir():
        raise typer.BadParameter(f"Repository store not found: {resolved}")
    return resolved


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8080, help="Server port"),
    repos_dir: Path = typer.Option(None, "--repos-dir", help="Repository store directory"),
    domain: str = typer.Option(AppConfig().domain, help="Import path domain of the store"),
    admin_user: Optional[str] = typer.Option(
        None, envvar="CODEHOST_ADMIN_USER", help="Login of the site administrator"
    ),
    admin_password: Optional[str] = typer.Option(
        None, envvar="CODEHOST_ADMIN_PASSWORD", help="Password of the site administrator"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Serve git and module proxy requests over HTTP."""
    _setup_logging(verbose)
    config = AppConfig(
        repos_dir=_resolve_repos_dir(repos_dir),
        domain=domain,
        admin_user=admin_user,
        admin_password=admin_password,
    )
    if not admin_user or not admin_password:
        console.print("[yellow]No administrator configured, pushes will be rejected.[/yellow]")

    web_app = create_app(config)
    console.print(f"Serving {config.repos_dir} on http://{host}:{port}")
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")


@app.command()
def dirs(
    repos_dir: Path = typer.Option(None, "--repos-dir", help="Repository store directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List the directories discovered in the repository store."""
    _setup_logging(verbose)
    found = discover(_resolve_repos_dir(repos_dir))
    if not found:
        console.print("[yellow]No repositories found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Import path")
    table.add_column("Repo root")
    table.add_column("Package")
    table.add_column("Synopsis")

    for d in found:
        package = d.package.name if d.package else ""
        synopsis = d.package.synopsis if d.package else ""
        table.add_row(d.import_path, d.repo_root, package, synopsis[:120])

    console.print(table)


@app.command()
def versions(
    module: str = typer.Argument(..., help="Module path"),
    repos_dir: Path = typer.Option(None, "--repos-dir", help="Repository store directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Print the pseudo-versions of a module, most recent last."""
    _setup_logging(verbose)
    try:
        check_path(module)
    except ModulePathError as exc:
        raise typer.BadParameter(str(exc)) from exc

    service = CodeService(_resolve_repos_dir(repos_dir))
    directory = service.lookup(module)
    if directory is None or not directory.is_repo_root():
        console.print(f"[red]Module not found: {module}[/red]")
        raise typer.Exit(code=1)

    revs = asyncio.run(list_master_commits(service.repo_dir(module)))
    if not revs:
        console.print("[yellow]No versions on master.[/yellow]")
        return
    for rev in reversed(revs):
        console.print(rev.Version, highlight=False)
