"""Per-tenant configuration contributions derived from CommonService objects."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import CS_CLONED_FROM_LABEL, PROFILE_CONTROLLER_KEY
from .lookup import find_by_name
from .merge import deep_merge
from .sizes import load_size_templates
from .tree import as_list, as_map, as_str, copy_tree, get_path

logger = logging.getLogger(__name__)


def is_being_deleted(crd_object: Dict[str, Any]) -> bool:
    """True if the object carries a deletion timestamp."""
    return bool(get_path(crd_object, "metadata", "deletionTimestamp"))


def is_clone(crd_object: Dict[str, Any]) -> bool:
    """True if the object was cloned from another CommonService."""
    labels = as_map(get_path(crd_object, "metadata", "labels")) or {}
    return CS_CLONED_FROM_LABEL in labels


def _normalize_service(service: Dict[str, Any], path: str) -> Dict[str, Any]:
    spec: Dict[str, Any] = {}
    raw_spec = service.get("spec")
    if raw_spec is not None and as_map(raw_spec) is None:
        logger.warning(f"Skipping {path}.spec: not a map")
    for kind, kind_spec in (as_map(raw_spec) or {}).items():
        if as_map(kind_spec) is None:
            logger.warning(f"Skipping {path}.spec.{kind}: not a map")
            continue
        spec[kind] = copy_tree(kind_spec)

    resources: List[Any] = []
    raw_resources = service.get("resources")
    if raw_resources is not None and as_list(raw_resources) is None:
        logger.warning(f"Skipping {path}.resources: not a list")
    for index, resource in enumerate(as_list(raw_resources) or []):
        if as_map(resource) is None:
            logger.warning(f"Skipping {path}.resources[{index}]: not a map")
            continue
        resources.append(copy_tree(resource))

    return {"name": service["name"], "spec": spec, "resources": resources}


def apply_size_profile(
    services: List[Dict[str, Any]],
    template: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Lay a size template under a tenant's services.

    Values the tenant sets explicitly win; everything else comes from the
    template. Template services the tenant does not mention are appended.

    Returns:
        A new list of service configs
    """
    result = [copy_tree(service) for service in services]
    for template_service in template:
        name = template_service.get("name")
        current = find_by_name(result, name)
        if current is None:
            result.append(deep_merge(template_service, {"name": name, "spec": {}, "resources": []}))
            continue
        current["spec"] = deep_merge(template_service.get("spec") or {}, current.get("spec") or {})
    return result


@dataclass
class TenantContribution:
    """Services and controller modes one CommonService asks for."""
    name: str
    namespace: str
    services: List[Dict[str, Any]] = field(default_factory=list)
    controller_modes: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_common_service(
        cls,
        crd_object: Dict[str, Any],
        size_templates: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ) -> "TenantContribution":
        """
        Create a TenantContribution from a CommonService object.

        Malformed entries are skipped with a warning; they never fail the
        whole tenant.

        Args:
            crd_object: The CommonService object from the Kubernetes API
            size_templates: Size templates by profile (built-in if None)

        Returns:
            The parsed TenantContribution
        """
        metadata = as_map(crd_object.get("metadata")) or {}
        spec = as_map(crd_object.get("spec")) or {}
        name = as_str(metadata.get("name"))
        namespace = as_str(metadata.get("namespace"))
        key = f"{namespace}/{name}"

        controller_modes: Dict[str, str] = {}
        profile_controller = as_str(spec.get("profileController"))
        if profile_controller:
            controller_modes[PROFILE_CONTROLLER_KEY] = profile_controller

        raw_services = spec.get("services")
        if raw_services is not None and as_list(raw_services) is None:
            logger.warning(f"CommonService {key}: spec.services is not a list")

        services: List[Dict[str, Any]] = []
        for index, service in enumerate(as_list(raw_services) or []):
            path = f"{key}: spec.services[{index}]"
            service_map = as_map(service)
            if service_map is None or not as_str(service_map.get("name")):
                logger.warning(f"Skipping {path}: service has no name")
                continue

            if find_by_name(services, service_map["name"]) is not None:
                logger.warning(f"Skipping {path}: duplicate service {service_map['name']}")
                continue

            strategy = as_str(service_map.get("managementStrategy"))
            if strategy:
                controller_modes[service_map["name"]] = strategy
            services.append(_normalize_service(service_map, path))

        size = as_str(spec.get("size"))
        if size:
            templates = load_size_templates() if size_templates is None else size_templates
            template = templates.get(size.lower())
            if template is None:
                logger.warning(f"CommonService {key}: unknown size {size}")
            else:
                services = apply_size_profile(services, template)

        return cls(
            name=name,
            namespace=namespace,
            services=services,
            controller_modes=controller_modes,
        )
