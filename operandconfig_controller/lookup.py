"""Lookup of services and resource overrides inside config lists."""

from typing import Any, Dict, List, Optional, Tuple

from .errors import IncompleteResourceIdentityError
from .tree import as_map, as_str


def find_by_name(items: Optional[List[Any]], name: str) -> Optional[Dict[str, Any]]:
    """Return the first map in ``items`` whose ``name`` equals ``name``."""
    for item in items or []:
        item_map = as_map(item)
        if item_map is not None and item_map.get("name") == name:
            return item_map
    return None


def resource_identity(resource: Any, fallback_namespace: str) -> Tuple[str, str, str, str]:
    """
    Read the identity of a resource override.

    Args:
        resource: The resource override map
        fallback_namespace: Namespace used when the override omits one

    Returns:
        Tuple of (namespace, apiVersion, kind, name)

    Raises:
        IncompleteResourceIdentityError: If apiVersion, kind or name is unset
    """
    resource_map = as_map(resource) or {}
    api_version = as_str(resource_map.get("apiVersion"))
    kind = as_str(resource_map.get("kind"))
    name = as_str(resource_map.get("name"))
    namespace = as_str(resource_map.get("namespace"))

    if not api_version or not kind or not name:
        raise IncompleteResourceIdentityError(api_version, kind, name, namespace)

    return namespace or fallback_namespace, api_version, kind, name


def find_by_identity(
    items: Optional[List[Any]],
    namespace: str,
    api_version: str,
    kind: str,
    name: str,
    fallback_namespace: str,
) -> Optional[Dict[str, Any]]:
    """
    Find a resource override by (namespace, apiVersion, kind, name).

    A candidate without a namespace is treated as living in
    ``fallback_namespace``.
    """
    for item in items or []:
        item_map = as_map(item)
        if item_map is None:
            continue
        if (
            item_map.get("apiVersion") == api_version
            and item_map.get("kind") == kind
            and item_map.get("name") == name
            and (as_str(item_map.get("namespace")) or fallback_namespace) == namespace
        ):
            return item_map
    return None


def upsert_spec_by_name(services: List[Any], name: str, spec: Dict[str, Any]) -> List[Any]:
    """Set ``spec`` on the named service, appending a stub if it is missing."""
    service = find_by_name(services, name)
    if service is not None:
        service["spec"] = spec
    else:
        services.append({"name": name, "spec": spec, "resources": []})
    return services


def upsert_resources_by_name(services: List[Any], name: str, resources: List[Any]) -> List[Any]:
    """Set ``resources`` on the named service, appending a stub if it is missing."""
    service = find_by_name(services, name)
    if service is not None:
        service["resources"] = resources
    else:
        services.append({"name": name, "spec": {}, "resources": resources})
    return services
