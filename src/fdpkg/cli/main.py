import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .. import config
from ..domain.errors import AlreadyInstalledError, FdpkgError, PackageNotFoundError
from ..ledger.store import LedgerStore
from ..registry.remote import HttpRegistry
from ..services.client import PackageClient
from ..services.info import InfoService
from ..services.install import InstallService
from ..services.remove import RemoveService
from ..ui.progress import ProgressManager

app = typer.Typer(help="Client for the fdrepo package registry.")
console = Console()


def get_registry() -> HttpRegistry:
    return HttpRegistry(config.get_registry_url(), cookie_file=config.COOKIE_FILE)


def get_ledger() -> LedgerStore:
    return LedgerStore(config.LEDGER_FILE)


@app.callback()
def main_callback(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """configure logging before every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.command()
def login(
    username: str,
    password: str = typer.Option(..., prompt=True, hide_input=True),
):
    """log in to the registry; session cookies are kept for later commands."""
    with get_registry() as registry:
        client = PackageClient(registry, ProgressManager(console))
        if not client.login(username, password):
            raise typer.Exit(1)


@app.command()
def info(package: str, version: Optional[str] = typer.Argument(None)):
    """show registry information about a package."""
    with get_registry() as registry:
        service = InfoService(registry, get_ledger(), ProgressManager(console))
        if not service.show_info(package, version):
            raise typer.Exit(1)


@app.command()
def latest(package: str):
    """print the latest version of a package."""
    with get_registry() as registry:
        version = PackageClient(registry, ProgressManager(console)).fetch_latest_version(package)
    if not version:
        console.print(f"[red]Could not determine the latest version of '{package}'[/red]")
        raise typer.Exit(1)
    console.print(version)


@app.command()
def download(
    package: str,
    version: str,
    file: str,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination (defaults to the file name)"),
):
    """download a single file of a package without recording it."""
    destination = output or Path(Path(file).name)
    with get_registry() as registry:
        client = PackageClient(registry, ProgressManager(console))
        if not client.fetch_file(package, version, file, destination):
            # a failed download leaves a truncated or partial file behind
            if destination.is_file():
                destination.unlink()
            raise typer.Exit(1)
    console.print(f"[green]✓[/green] Saved {file} to {destination}")


@app.command()
def install(
    package: str,
    version: Optional[str] = typer.Argument(None),
    force: bool = typer.Option(False, "--force", "-f", help="Reinstall even if already installed"),
):
    """download a package's files into the install directory and record them."""
    with get_registry() as registry:
        service = InstallService(registry, get_ledger(), config.get_install_dir(), ProgressManager(console))
        try:
            service.install(package, version, force=force)
        except AlreadyInstalledError as e:
            console.print(f"[yellow]{e}[/yellow] (use --force to reinstall)")
        except FdpkgError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)


@app.command()
def remove(package: str):
    """delete an installed package's files and forget it."""
    service = RemoveService(get_ledger(), config.get_install_dir(), ProgressManager(console))
    try:
        service.remove(package)
    except PackageNotFoundError:
        console.print(f"[red]Package '{package}' is not installed[/red]")
        raise typer.Exit(1)
    except FdpkgError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command("list")
def list_packages():
    """list installed packages."""
    try:
        records = get_ledger().list_packages()
    except FdpkgError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not records:
        console.print("[dim]No packages installed.[/dim]")
        return

    table = Table(title="Installed packages")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Files", justify="right")
    for record in sorted(records, key=lambda r: r.sort_key):
        table.add_row(record.name, record.version, str(len(record.files)))
    console.print(table)


@app.command()
def files(package: str):
    """list the files recorded for an installed package."""
    recorded = get_ledger().get_files(package)
    if not recorded:
        console.print(f"[yellow]No files recorded for '{package}'[/yellow]")
        raise typer.Exit(1)
    for file in recorded:
        console.print(file, highlight=False)


@app.command()
def installed(package: str, version: str = typer.Argument("_any")):
    """exit with 0 if the package (optionally a version) is installed."""
    if get_ledger().is_installed(package, version):
        console.print(f"[green]{package} is installed[/green]")
    else:
        console.print(f"{package} is not installed")
        raise typer.Exit(1)


@app.command("config")
def config_command(
    key: Optional[str] = typer.Argument(None, help=f"One of {', '.join(config.KNOWN_KEYS)}"),
    value: Optional[str] = typer.Argument(None),
):
    """show settings, or set one."""
    if key is None:
        console.print(f"Registry:  {config.get_registry_url()}")
        console.print(f"Install:   {config.get_install_dir()}")
        console.print(f"Ledger:    {config.LEDGER_FILE}")
        console.print(f"Cookies:   {config.COOKIE_FILE}")
        return

    if value is None:
        console.print(config.get_value(key) or "")
        return

    try:
        config.set_value(key, value)
    except (ValueError, RuntimeError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {key} set")


if __name__ == "__main__":
    app()
