"""Main controller logic for the OperandConfig Controller."""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from kubernetes.client.rest import ApiException

from .config import (
    CONFLICT_RETRY_SECONDS,
    MAX_CONFLICT_RETRIES,
    PHASE_FAILED,
    PHASE_SUCCEEDED,
    RESYNC_INTERVAL_SECONDS,
    WATCH_TIMEOUT_SECONDS,
)
from .crd_client import CommonServiceClient
from .errors import ConflictError, OperandConfigError
from .reconciler import OperandConfigReconciler
from .tenant import TenantContribution, is_being_deleted, is_clone
from .tree import get_path

logger = logging.getLogger(__name__)


class CommonServiceController:
    """
    Watches CommonService objects and keeps the OperandConfig converged
    with what all of them ask for.
    """

    def __init__(
        self,
        namespace: str,
        watch_namespace: str = "",
        dry_run: bool = False,
        rules_text: Optional[str] = None,
        crd_client: Optional[CommonServiceClient] = None,
    ):
        """
        Initialize the controller.

        Args:
            namespace: Services namespace holding the OperandConfig
            watch_namespace: Namespace to watch for CommonServices ("" for all)
            dry_run: If True, don't write the OperandConfig
            rules_text: Rules document YAML (built-in rules if None)
            crd_client: Client to use (a new CommonServiceClient if None)
        """
        self.namespace = namespace
        self.watch_namespace = watch_namespace
        self.dry_run = dry_run

        self.crd_client = crd_client or CommonServiceClient()
        self.reconciler = OperandConfigReconciler(
            self.crd_client,
            namespace,
            rules_text=rules_text,
            dry_run=dry_run,
        )

        self._stop_event = threading.Event()

    def reconcile_with_retry(self, description: str, reconcile: Callable[[], bool]) -> bool:
        """
        Run a reconcile, starting over from a fresh read on every conflict.

        Raises:
            ConflictError: If every attempt conflicted
            OperandConfigError: On any other reconcile failure
        """
        attempt = 1
        while True:
            try:
                return reconcile()
            except ConflictError as e:
                if attempt >= MAX_CONFLICT_RETRIES:
                    logger.error(f"{description}: giving up after {attempt} conflicts")
                    raise
                logger.warning(f"{description}: {e}, retrying ({attempt}/{MAX_CONFLICT_RETRIES})")
                time.sleep(CONFLICT_RETRY_SECONDS)
                attempt += 1

    def _set_phase(self, obj: Dict[str, Any], phase: str) -> None:
        if self.dry_run or get_path(obj, "status", "phase") == phase:
            return
        metadata = obj.get("metadata", {})
        self.crd_client.update_common_service_phase(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            phase=phase,
        )

    def handle_common_service_event(self, event_type: str, obj: Dict[str, Any]) -> None:
        """
        Handle a CommonService watch event.

        Args:
            event_type: ADDED, MODIFIED, or DELETED
            obj: The CommonService object from the event
        """
        metadata = obj.get("metadata", {})
        key = f"{metadata.get('namespace', '')}/{metadata.get('name', '')}"

        if is_clone(obj):
            logger.debug(f"Ignoring cloned CommonService {key}")
            return

        if event_type == "DELETED" or is_being_deleted(obj):
            logger.info(f"CommonService {key} removed, shrinking OperandConfig")
            try:
                self.reconcile_with_retry(f"Delete {key}", self.reconciler.reconcile_delete)
            except OperandConfigError as e:
                logger.error(f"Failed to shrink OperandConfig after deleting {key}: {e}")
            return

        if event_type not in ("ADDED", "MODIFIED"):
            return

        logger.info(f"CommonService {event_type}: {key}")
        contribution = TenantContribution.from_common_service(obj)

        try:
            unchanged = self.reconcile_with_retry(
                f"Update {key}",
                lambda: self.reconciler.reconcile_update(
                    contribution.services, contribution.controller_modes
                ),
            )
        except OperandConfigError as e:
            logger.error(f"Failed to reconcile CommonService {key}: {e}")
            self._set_phase(obj, PHASE_FAILED)
            return

        if not unchanged:
            logger.info(f"OperandConfig changed for CommonService {key}")
        self._set_phase(obj, PHASE_SUCCEEDED)

    def resync(self) -> None:
        """Re-aggregate all live tenants into the OperandConfig."""
        try:
            self.reconcile_with_retry("Resync", lambda: self.reconciler.reconcile_update([], {}))
        except OperandConfigError as e:
            logger.error(f"Resync failed: {e}")

    def watch_common_services(self) -> None:
        """Watch for CommonService events in a loop."""
        logger.info("Starting CommonService watcher...")

        while not self._stop_event.is_set():
            try:
                for event in self.crd_client.watch_common_services(
                    namespace=self.watch_namespace,
                    timeout=WATCH_TIMEOUT_SECONDS
                ):
                    if self._stop_event.is_set():
                        break

                    self.handle_common_service_event(event["type"], event["object"])

            except ApiException as e:
                logger.error(f"CommonService watch error: {e}")
                time.sleep(5)
            except Exception as e:
                logger.exception(f"Unexpected error in CommonService watcher: {e}")
                time.sleep(5)

    def periodic_resync(self) -> None:
        """Periodically re-aggregate all tenants."""
        logger.info(f"Starting periodic resync (interval: {RESYNC_INTERVAL_SECONDS}s)")

        while not self._stop_event.wait(RESYNC_INTERVAL_SECONDS):
            logger.debug("Running periodic resync...")
            self.resync()

    def run(self) -> None:
        """Run the controller."""
        logger.info("=" * 60)
        logger.info("Starting OperandConfig Controller")
        logger.info("=" * 60)
        logger.info(f"Services namespace: {self.namespace}")
        logger.info(f"Watching: {self.watch_namespace or 'all namespaces'}")
        logger.info(f"Dry run: {self.dry_run}")

        watch_thread = threading.Thread(
            target=self.watch_common_services,
            name="commonservice-watcher",
            daemon=True
        )

        resync_thread = threading.Thread(
            target=self.periodic_resync,
            name="periodic-resync",
            daemon=True
        )

        watch_thread.start()
        resync_thread.start()

        logger.info("Controller is running. Press Ctrl+C to stop.")

        # Keep main thread alive
        try:
            while not self._stop_event.is_set():
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutdown requested...")
            self._stop_event.set()

    def stop(self) -> None:
        """Stop the controller."""
        logger.info("Stopping controller...")
        self._stop_event.set()
