from typing import Optional
from rich.panel import Panel
from rich.table import Table

from ..domain.errors import FdpkgError
from ..ledger.store import LedgerStore
from ..registry.client import RegistryClient
from ..ui.progress import ProgressManager


class InfoService:
    """handles fetching and displaying package information."""
    
    def __init__(self, registry_client: RegistryClient, ledger: LedgerStore, progress_manager: Optional[ProgressManager] = None):
        self.registry_client = registry_client
        self.ledger = ledger
        self.progress_manager = progress_manager or ProgressManager()
        
    def show_info(self, package_name: str, version: Optional[str] = None) -> bool:
        """
        fetch and display information about a package.
        
        args:
            package_name: name of the package
            version: optional specific version, latest if omitted

        returns:
            true if the package was found and displayed
        """
        target_version = version or "latest"
        try:
            with self.progress_manager.spinner(f"fetching {package_name}@{target_version}"):
                info = self.registry_client.fetch_metadata(package_name, target_version)
        except FdpkgError as e:
            self.progress_manager.print(f"[red]Error fetching package info:[/red] {e}")
            return False

        grid = Table.grid(expand=True)
        grid.add_column(style="bold cyan", justify="right")
        grid.add_column(style="white")

        grid.add_row("Name:", info.name)
        grid.add_row("Version:", info.version)
        grid.add_row("Id:", info.id)
        grid.add_row("Description:", info.description or "No description provided.")
        grid.add_row("Platform:", info.platform)
        grid.add_row("Dependencies:", ", ".join(info.dependencies) if info.dependencies else "None")
        grid.add_row("Files:", "\n".join(info.files) if info.files else "None")

        installed = self.ledger.get_record(info.name)
        if installed is None:
            grid.add_row("Installed:", "no")
        elif installed.version == info.version:
            grid.add_row("Installed:", "[green]yes[/green]")
        else:
            grid.add_row("Installed:", f"[yellow]{installed.version}[/yellow]")

        self.progress_manager.print(Panel(grid, title=f"📦 Package Info: {info.name}", border_style="cyan"))
        return True
