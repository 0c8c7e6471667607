"""Client for the CommonService and OperandConfig custom resources."""

import logging
from typing import Any, Dict, Iterator, List, Optional

from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from .config import (
    CS_CLONED_FROM_LABEL,
    CS_GROUP,
    CS_PLURAL,
    CS_VERSION,
    OPCON_GROUP,
    OPCON_PLURAL,
    OPCON_VERSION,
)
from .errors import ClusterAPIError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

# Live tenants, excluding clones of another CommonService
LIVE_TENANTS_SELECTOR = f"!{CS_CLONED_FROM_LABEL}"


def _translate(e: ApiException, what: str) -> Exception:
    if e.status == 404:
        return NotFoundError(f"{what} not found")
    if e.status == 409:
        return ConflictError(f"{what} was modified concurrently")
    return ClusterAPIError(f"{what}: {e.status} {e.reason}")


class CommonServiceClient:
    """Client for CommonService tenants and the OperandConfig they feed."""

    def __init__(self, custom_api: Optional[client.CustomObjectsApi] = None):
        """
        Initialize the CRD client.

        Args:
            custom_api: API to use (a new CustomObjectsApi if None)
        """
        self.custom_api = custom_api or client.CustomObjectsApi()

    def get_operand_config(self, namespace: str, name: str) -> Dict[str, Any]:
        """
        Get the OperandConfig object.

        Raises:
            NotFoundError: If the OperandConfig does not exist
            ClusterAPIError: On any other API failure
        """
        try:
            return self.custom_api.get_namespaced_custom_object(
                group=OPCON_GROUP,
                version=OPCON_VERSION,
                namespace=namespace,
                plural=OPCON_PLURAL,
                name=name
            )
        except ApiException as e:
            logger.error(f"Error getting OperandConfig {namespace}/{name}: {e.status} {e.reason}")
            raise _translate(e, f"OperandConfig {namespace}/{name}") from e

    def update_operand_config(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace the OperandConfig object.

        The object's metadata.resourceVersion is sent along, so the API
        rejects the write if the object changed since it was read.

        Raises:
            ConflictError: If the object was modified concurrently
            NotFoundError: If the object no longer exists
            ClusterAPIError: On any other API failure
        """
        metadata = obj.get("metadata", {})
        name = metadata.get("name", "")
        namespace = metadata.get("namespace", "")

        try:
            updated = self.custom_api.replace_namespaced_custom_object(
                group=OPCON_GROUP,
                version=OPCON_VERSION,
                namespace=namespace,
                plural=OPCON_PLURAL,
                name=name,
                body=obj
            )
            logger.debug(f"Updated OperandConfig {namespace}/{name}")
            return updated
        except ApiException as e:
            logger.error(f"Error updating OperandConfig {namespace}/{name}: {e.status} {e.reason}")
            raise _translate(e, f"OperandConfig {namespace}/{name}") from e

    def list_common_services(self, label_selector: str = LIVE_TENANTS_SELECTOR) -> List[Dict[str, Any]]:
        """
        List CommonService objects across all namespaces.

        Args:
            label_selector: Label selector (non-cloned tenants by default)

        Returns:
            List of CommonService objects

        Raises:
            ClusterAPIError: If the list call fails
        """
        try:
            response = self.custom_api.list_cluster_custom_object(
                group=CS_GROUP,
                version=CS_VERSION,
                plural=CS_PLURAL,
                label_selector=label_selector
            )
            return response.get("items", [])
        except ApiException as e:
            logger.error(f"Error listing CommonServices: {e.status} {e.reason}")
            raise _translate(e, "CommonService list") from e

    def update_common_service_phase(self, name: str, namespace: str, phase: str) -> bool:
        """
        Set status.phase of a CommonService.

        Returns:
            True if successful, False otherwise
        """
        try:
            self.custom_api.patch_namespaced_custom_object_status(
                group=CS_GROUP,
                version=CS_VERSION,
                namespace=namespace,
                plural=CS_PLURAL,
                name=name,
                body={"status": {"phase": phase}}
            )
            logger.debug(f"Updated status for CommonService {namespace}/{name}: {phase}")
            return True
        except ApiException as e:
            logger.error(f"Error updating CommonService status {namespace}/{name}: {e.status} {e.reason}")
            return False

    def watch_common_services(self, namespace: str = "", timeout: int = 300) -> Iterator[Dict[str, Any]]:
        """
        Create a watch stream for CommonService objects.

        Args:
            namespace: Namespace to watch ("" for all namespaces)
            timeout: Watch timeout in seconds

        Yields:
            Watch events
        """
        w = watch.Watch()

        try:
            if namespace:
                stream = w.stream(
                    self.custom_api.list_namespaced_custom_object,
                    group=CS_GROUP,
                    version=CS_VERSION,
                    namespace=namespace,
                    plural=CS_PLURAL,
                    timeout_seconds=timeout
                )
            else:
                stream = w.stream(
                    self.custom_api.list_cluster_custom_object,
                    group=CS_GROUP,
                    version=CS_VERSION,
                    plural=CS_PLURAL,
                    timeout_seconds=timeout
                )

            for event in stream:
                yield event

        except ApiException as e:
            logger.error(f"Watch error: {e}")
            raise
