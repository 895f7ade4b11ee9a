"""Background sync worker: syncs every due organization on a periodic schedule."""

import logging
import signal
import time

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
log = logging.getLogger("sharepoint_docsync.worker")

_running = True


def _handle_signal(signum: int, frame: object) -> None:
    global _running
    log.info("Received signal %s, shutting down...", signum)
    _running = False


signal.signal(signal.SIGINT, _handle_signal)
signal.signal(signal.SIGTERM, _handle_signal)


def _sync_due_configs() -> None:
    """Run one sync for each enabled configuration whose interval elapsed."""
    from sharepoint_docsync.models import SyncConfig, SyncLog
    from sharepoint_docsync.services.sync import SyncService

    service = SyncService()
    for config in SyncConfig.get_all(enabled_only=True):
        if not _running:
            break
        if not config.is_due():
            continue
        if SyncLog.is_sync_in_progress(config.id):
            log.info("Sync already in progress for %s, skipping", config.organization_id)
            continue

        log.info("Starting sync for %s", config.organization_id)
        try:
            outcome = service.run_sync(config.organization_id)
        except Exception:
            log.exception("Sync failed for %s", config.organization_id)
            continue
        log.info(
            "Sync completed for %s: added=%d, updated=%d, deleted=%d",
            config.organization_id,
            outcome.log.items_added,
            outcome.log.items_updated,
            outcome.log.items_deleted,
        )


def run() -> None:
    """Main worker loop."""
    from sharepoint_docsync import create_app
    from sharepoint_docsync.models import SyncLog

    app = create_app()

    interval: int = app.config["SYNC_WORKER_INTERVAL"]

    # Clean up any sync runs left running by a previous crash/kill
    with app.app_context():
        stuck = SyncLog.recover_stuck()
        if stuck:
            log.info("Recovered %d stuck sync run(s)", stuck)

    log.info("Sync worker started (interval=%ds)", interval)

    while _running:
        with app.app_context():
            try:
                _sync_due_configs()
            except Exception:
                log.exception("Error in sync worker loop")

        # Sleep in small increments so we can respond to signals
        for _ in range(interval * 10):
            if not _running:
                break
            time.sleep(0.1)

    log.info("Sync worker stopped.")


if __name__ == "__main__":
    run()
