"""CLI commands for SharePoint DocSync."""

import json
import logging
import sys
from pathlib import Path

import click
from flask import Flask

from sharepoint_docsync.errors import DocSyncError


def register_cli_commands(app: Flask) -> None:
    """Register CLI commands with the Flask app."""

    @app.cli.command("sync")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    @click.option("--full", is_flag=True, help="Force full sync (ignore delta link)")
    @click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
    def sync_command(organization_id: str, full: bool, verbose: bool):
        """Synchronize document metadata from SharePoint."""
        if verbose:
            logging.basicConfig(level=logging.DEBUG, stream=sys.stdout)
        else:
            logging.basicConfig(level=logging.INFO, stream=sys.stdout)

        from sharepoint_docsync.services import SyncService

        try:
            outcome = SyncService().run_sync(organization_id, full_sync=full)
        except DocSyncError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        except Exception as e:
            click.echo(f"Sync failed: {e}", err=True)
            sys.exit(1)

        log = outcome.log
        click.echo()
        click.echo(f"Sync completed ({'full' if log.is_full_sync else 'incremental'}):")
        click.echo(f"  Found:   {log.items_found}")
        click.echo(f"  Added:   {log.items_added}")
        click.echo(f"  Updated: {log.items_updated}")
        click.echo(f"  Deleted: {log.items_deleted}")

    @app.cli.command("status")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    def status_command(organization_id: str):
        """Show sync status and statistics."""
        from sharepoint_docsync.services import SyncService

        try:
            status = SyncService().get_status(organization_id)
        except DocSyncError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        config = status["config"]
        click.echo(f"SharePoint DocSync Status: {organization_id}")
        click.echo("=" * 40)
        click.echo(f"Site:        {config.site_name or config.site_id}")
        click.echo(f"Root folder: {config.root_folder_path}")
        click.echo(f"Enabled:     {'yes' if config.sync_enabled else 'no'}")

        if status["is_running"]:
            run = status["current_run"]
            click.echo(f"Status:      SYNC IN PROGRESS (started {run.started_at})")
        else:
            click.echo("Status:      Idle")

        click.echo()
        click.echo("Documents:")
        click.echo(f"  Total items: {status['total_documents']}")
        click.echo(f"  Total size:  {_format_size(status['total_size'])}")

        if status["last_completed_run"]:
            run = status["last_completed_run"]
            click.echo()
            click.echo("Last Sync:")
            click.echo(f"  Status:     {run.status}")
            click.echo(f"  Started:    {run.started_at}")
            click.echo(f"  Completed:  {run.completed_at}")
            click.echo(f"  Added:      {run.items_added}")
            click.echo(f"  Updated:    {run.items_updated}")
            click.echo(f"  Deleted:    {run.items_deleted}")
            if run.error_message:
                click.echo(f"  Error:      {run.error_message}")

    @app.cli.command("list")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    @click.option("--search", "-s", help="Search by name or folder")
    @click.option("--limit", "-n", default=50, help="Maximum number of results")
    @click.option("--deleted", is_flag=True, help="Include deleted documents")
    @click.option("--json", "as_json", is_flag=True, help="Output as JSON")
    def list_command(
        organization_id: str, search: str | None, limit: int, deleted: bool, as_json: bool
    ):
        """List mirrored documents."""
        from sharepoint_docsync.models import Document, SyncConfig

        config = SyncConfig.get_by_organization(organization_id)
        if config is None:
            click.echo(f"No SharePoint configuration for {organization_id}.", err=True)
            sys.exit(1)

        docs = Document.get_all(config.id, include_deleted=deleted, search=search, limit=limit)

        if as_json:
            click.echo(json.dumps([doc.to_dict() for doc in docs], indent=2))
            return

        if not docs:
            click.echo("No documents found.")
            return

        click.echo(f"{'Path':<60} {'Size':>10} {'Synced'}")
        click.echo("-" * 90)
        for doc in docs:
            size_str = _format_size(doc.size_bytes) if doc.size_bytes else "-"
            synced = doc.synced_at[:10] if doc.synced_at else "-"
            path = f"{doc.folder_path.rstrip('/')}/{doc.name}"
            if doc.is_folder:
                path += "/"
            if len(path) > 58:
                path = "..." + path[-55:]
            if doc.is_deleted:
                path = f"[DEL] {path}"
            click.echo(f"{path:<60} {size_str:>10} {synced}")

        click.echo()
        click.echo(f"Total: {len(docs)} document(s)")

    @app.cli.command("export-catalog")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    @click.option("--output", default="catalog.xlsx", help="Output file path")
    def export_catalog_command(organization_id: str, output: str):
        """Export the document catalog as XLSX spreadsheet."""
        from sharepoint_docsync.blueprints.documents import build_catalog
        from sharepoint_docsync.models import Document, SyncConfig

        config = SyncConfig.get_by_organization(organization_id)
        if config is None:
            click.echo(f"No SharePoint configuration for {organization_id}.", err=True)
            sys.exit(1)

        docs = Document.get_all(config.id, include_deleted=False)
        build_catalog(docs).save(output)
        click.echo(f"Exported {len(docs)} document(s) to {output}")

    @app.cli.command("configure")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    @click.option("--site-id", required=True, help="SharePoint site ID")
    @click.option("--drive-id", help="Document library drive ID (default: site's default)")
    @click.option("--root", "root_folder_path", default="/", help="Root folder to mirror")
    @click.option("--interval", type=int, help="Sync interval in minutes")
    @click.option("--disabled", is_flag=True, help="Save the configuration with sync disabled")
    def configure_command(
        organization_id: str,
        site_id: str,
        drive_id: str | None,
        root_folder_path: str,
        interval: int | None,
        disabled: bool,
    ):
        """Create or update an organization's SharePoint configuration."""
        from sharepoint_docsync.services import ConfigurationService

        payload = {
            "site_id": site_id,
            "drive_id": drive_id,
            "root_folder_path": root_folder_path,
            "sync_interval_minutes": interval,
            "sync_enabled": not disabled,
        }
        try:
            result = ConfigurationService().save_config(organization_id, payload)
        except DocSyncError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        click.echo(f"Configuration saved for site {result['site_name']} ({result['site_url']})")

    @app.cli.command("remove-config")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    @click.confirmation_option(prompt="This deletes all mirrored documents and logs. Continue?")
    def remove_config_command(organization_id: str):
        """Delete an organization's configuration, documents and sync logs."""
        from sharepoint_docsync.services import ConfigurationService

        if ConfigurationService().delete_config(organization_id):
            click.echo("Configuration removed.")
        else:
            click.echo("No configuration found.")

    @app.cli.command("drives")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    def drives_command(organization_id: str):
        """List the document libraries of the configured site."""
        from sharepoint_docsync.services import ConfigurationService

        try:
            result = ConfigurationService().list_drives(organization_id)
        except DocSyncError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        for drive in result["drives"]:
            marker = "*" if drive["id"] == result["current_drive_id"] else " "
            click.echo(f"{marker} {drive['name']} ({drive['id']})")

    @app.cli.command("browse")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    @click.argument("folder_path", default="/")
    def browse_command(organization_id: str, folder_path: str):
        """List one folder of the configured drive."""
        from sharepoint_docsync.services import SyncService

        try:
            result = SyncService().browse_folders(organization_id, folder_path)
        except DocSyncError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        click.echo(f"{result['path']}:")
        for item in result["items"]:
            if item["isFolder"]:
                click.echo(f"  {item['name']}/ ({item['childCount'] or 0} items)")
            else:
                click.echo(f"  {item['name']} {_format_size(item['size'])}")

    @app.cli.command("upload")
    @click.option("--org", "-o", "organization_id", required=True, help="Organization ID")
    @click.option("--folder", "folder_path", default="/", help="Folder below the root folder")
    @click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
    def upload_command(organization_id: str, folder_path: str, file: Path):
        """Upload a small file (up to 4 MB) into the mirrored folder."""
        from sharepoint_docsync.services import SyncService

        try:
            item = SyncService().upload_file(
                organization_id,
                file_name=file.name,
                content=file.read_bytes(),
                folder_path=folder_path,
            )
        except DocSyncError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        click.echo(f"Uploaded {item.name} ({item.id})")

    @app.cli.command("test-connection")
    @click.option("--site-id", required=True, help="SharePoint site ID")
    def test_connection_command(site_id: str):
        """Test SharePoint connection."""
        from flask import current_app

        from sharepoint_docsync.services import SharePointClient

        click.echo("Testing SharePoint connection...")
        try:
            with SharePointClient.from_app_config(current_app.config) as client:
                info = client.test_connection(site_id)
        except Exception as e:
            click.echo(f"Connection failed: {e}", err=True)
            sys.exit(1)

        click.echo()
        click.echo("Connection successful!")
        click.echo(f"  Site: {info['site_name']}")
        click.echo(f"  URL:  {info['site_url']}")
        click.echo()
        click.echo("Document Libraries:")
        for drive in info["drives"]:
            click.echo(f"  - {drive['name']} ({drive['id']})")

    @app.cli.command("clear-delta-links")
    @click.confirmation_option(prompt="This will force a full sync on next run. Continue?")
    def clear_delta_links_command():
        """Clear all stored delta links to force a full sync."""
        from sharepoint_docsync.models import SyncConfig

        SyncConfig.clear_all_delta_links()
        click.echo("Delta links cleared. Next sync will be a full sync.")


def _format_size(size: int | None) -> str:
    """Format file size in human-readable format."""
    if size is None:
        return "-"
    fsize = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if fsize < 1024:
            return f"{fsize:.1f} {unit}" if unit != "B" else f"{int(fsize)} {unit}"
        fsize /= 1024
    return f"{fsize:.1f} PB"
