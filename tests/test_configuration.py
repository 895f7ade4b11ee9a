"""Tests for configuration management."""

import pytest

from sharepoint_docsync.errors import InvalidRequestError, NotConfiguredError
from sharepoint_docsync.models import Document, SyncConfig, SyncLog
from sharepoint_docsync.services.configuration import ConfigurationService
from sharepoint_docsync.services.reconcile import DocumentReconciler
from sharepoint_docsync.services.sharepoint import DriveItem, SharePointClient

from conftest import DRIVE_ID, SITE_ID, FakeGraph, graph_item

ORG = "org-1"


@pytest.fixture
def service(sharepoint: SharePointClient, graph: FakeGraph, ctx: None) -> ConfigurationService:
    graph.get(
        f"/sites/{SITE_ID}",
        {"id": SITE_ID, "displayName": "Legal", "webUrl": "https://contoso/sites/legal"},
    )
    graph.get(f"/sites/{SITE_ID}/drive", {"id": DRIVE_ID})
    return ConfigurationService(sharepoint_client=sharepoint)


def _seed_document(config: SyncConfig) -> None:
    item = DriveItem.from_graph(graph_item("a", "a.pdf", parent=config.root_folder_path))
    DocumentReconciler(config, DRIVE_ID).upsert(item)


class TestSaveConfig:
    def test_creates_with_defaults(self, service: ConfigurationService) -> None:
        result = service.save_config(ORG, {"site_id": SITE_ID, "root_folder_path": "Contracts/"})

        assert result == {"site_name": "Legal", "site_url": "https://contoso/sites/legal"}
        config = SyncConfig.get_by_organization(ORG)
        assert config is not None
        assert config.drive_id == DRIVE_ID
        assert config.root_folder_path == "/Contracts"
        assert config.sync_interval_minutes == 5
        assert config.sync_enabled

    def test_explicit_drive_skips_detection(
        self, service: ConfigurationService, graph: FakeGraph
    ) -> None:
        service.save_config(ORG, {"site_id": SITE_ID, "drive_id": "drive-2"})

        config = SyncConfig.get_by_organization(ORG)
        assert config is not None
        assert config.drive_id == "drive-2"
        assert not [r for r in graph.requests if r.url.path.endswith("/drive")]

    def test_site_id_required(self, service: ConfigurationService) -> None:
        with pytest.raises(InvalidRequestError):
            service.save_config(ORG, {})

    @pytest.mark.parametrize("interval", ["soon", 0, -3])
    def test_rejects_bad_interval(self, service: ConfigurationService, interval: object) -> None:
        with pytest.raises(InvalidRequestError):
            service.save_config(ORG, {"site_id": SITE_ID, "sync_interval_minutes": interval})

    def test_root_change_purges_documents_and_delta_link(
        self, service: ConfigurationService
    ) -> None:
        service.save_config(ORG, {"site_id": SITE_ID, "root_folder_path": "/Contracts"})
        config = SyncConfig.get_by_organization(ORG)
        assert config is not None
        _seed_document(config)
        config.record_success("https://graph.microsoft.com/v1.0/delta?token=L1")

        service.save_config(ORG, {"site_id": SITE_ID, "root_folder_path": "/HR"})

        updated = SyncConfig.get_by_organization(ORG)
        assert updated is not None
        assert updated.root_folder_path == "/HR"
        assert updated.last_delta_link is None
        assert Document.count_all(config.id, include_deleted=True) == 0

    def test_same_root_keeps_state(self, service: ConfigurationService) -> None:
        service.save_config(ORG, {"site_id": SITE_ID, "root_folder_path": "/Contracts"})
        config = SyncConfig.get_by_organization(ORG)
        assert config is not None
        _seed_document(config)
        config.record_success("link-1")

        service.save_config(
            ORG,
            {"site_id": SITE_ID, "root_folder_path": "/Contracts/", "sync_interval_minutes": "15"},
        )

        updated = SyncConfig.get_by_organization(ORG)
        assert updated is not None
        assert updated.last_delta_link == "link-1"
        assert updated.sync_interval_minutes == 15
        assert Document.count_all(config.id) == 1


class TestDeleteConfig:
    def test_removes_everything(self, service: ConfigurationService) -> None:
        service.save_config(ORG, {"site_id": SITE_ID})
        config = SyncConfig.get_by_organization(ORG)
        assert config is not None
        _seed_document(config)
        SyncLog.create(organization_id=ORG, config_id=config.id)

        assert service.delete_config(ORG) is True

        assert SyncConfig.get_by_organization(ORG) is None
        assert Document.count_all(config.id, include_deleted=True) == 0
        assert SyncLog.get_recent(ORG) == []

    def test_missing_config(self, service: ConfigurationService) -> None:
        assert service.delete_config(ORG) is False


class TestListDrives:
    def test_lists_site_drives(self, service: ConfigurationService, graph: FakeGraph) -> None:
        service.save_config(ORG, {"site_id": SITE_ID})
        graph.get(
            f"/sites/{SITE_ID}/drives",
            {"value": [{"id": DRIVE_ID, "name": "Documents", "driveType": "documentLibrary"}]},
        )

        result = service.list_drives(ORG)

        assert result["current_drive_id"] == DRIVE_ID
        assert result["drives"][0]["name"] == "Documents"

    def test_requires_config(self, service: ConfigurationService) -> None:
        with pytest.raises(NotConfiguredError):
            service.list_drives(ORG)
