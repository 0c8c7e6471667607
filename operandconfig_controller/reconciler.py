"""Reconciliation of the OperandConfig from all CommonService tenants."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .config import OPCON_NAME
from .controller_mode import is_independent_mode, merge_controller_modes, resolve_mode
from .errors import IncompleteResourceIdentityError, MalformedOperandConfigError
from .lookup import (
    find_by_identity,
    find_by_name,
    resource_identity,
    upsert_resources_by_name,
    upsert_spec_by_name,
)
from .merge import (
    Extreme,
    extreme_merge,
    reset_managed_fields,
    reset_managed_limits,
    rule_filtered_merge,
)
from .rules import CONFIGURATION_RULES, RuleSet, load_rules
from .tenant import TenantContribution, is_being_deleted, is_clone
from .tree import as_list, as_map, as_str, copy_tree, get_path, tree_equal

logger = logging.getLogger(__name__)


class OperandConfigReconciler:
    """
    Keeps the OperandConfig converged with what every tenant asks for.

    Each reconcile reads the OperandConfig once, merges on its own copy, and
    writes it back once. A ConflictError from the write means another
    reconcile got there first; the caller retries from scratch.
    """

    def __init__(
        self,
        client,
        namespace: str,
        rules_text: Optional[str] = None,
        opcon_name: str = OPCON_NAME,
        size_templates: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        dry_run: bool = False,
    ):
        """
        Initialize the reconciler.

        Args:
            client: Persistence adapter (see crd_client.CommonServiceClient)
            namespace: Services namespace holding the OperandConfig
            rules_text: Rules document YAML (built-in rules if None)
            opcon_name: Name of the OperandConfig object
            size_templates: Size profile templates (built-in if None)
            dry_run: If True, don't write the OperandConfig
        """
        self.client = client
        self.namespace = namespace
        self.rules_text = rules_text if rules_text is not None else CONFIGURATION_RULES
        self.opcon_name = opcon_name
        self.size_templates = size_templates
        self.dry_run = dry_run

    def reconcile_update(
        self,
        new_configs: List[Dict[str, Any]],
        controller_modes: Dict[str, str],
    ) -> bool:
        """
        Apply a tenant's services, then re-aggregate across all live tenants.

        Args:
            new_configs: Service configs from the tenant that triggered this
            controller_modes: That tenant's controller modes

        Returns:
            True if the OperandConfig services did not change

        Raises:
            NotFoundError: If the OperandConfig does not exist
            ConflictError: If the OperandConfig changed since it was read
            MalformedRuleDocumentError: If the rules cannot be parsed
        """
        opcon, services = self._fetch()
        snapshot = copy_tree(services)
        rule_set = load_rules(self.rules_text)

        logger.info(f"Applying {len(new_configs)} service config(s) to OperandConfig {self._key}")

        for new_config in new_configs:
            new_config_map = as_map(new_config)
            if new_config_map is None:
                if new_config is not None:
                    logger.warning(f"Skipping service config: not a map ({type(new_config).__name__})")
                continue
            operand = as_str(new_config_map.get("name"))
            service = find_by_name(services, operand)
            if service is None:
                logger.debug(f"Operand {operand!r} is not in OperandConfig {self._key}, skipping")
                continue
            mode = resolve_mode(controller_modes, operand)
            self._apply_service(service, new_config_map, rule_set, mode)

        services = self.aggregate_extreme(services, rule_set, Extreme.MAX)

        unchanged = tree_equal(snapshot, services)
        self._write(opcon, services, unchanged)
        return unchanged

    def reconcile_delete(self) -> bool:
        """
        Shrink the OperandConfig to what the remaining tenants still need.

        Returns:
            True if the OperandConfig services did not change
        """
        opcon, services = self._fetch()
        snapshot = copy_tree(services)
        rule_set = load_rules(self.rules_text)

        logger.info(f"Shrinking OperandConfig {self._key} to the remaining tenants")

        services = self.aggregate_extreme(services, rule_set, Extreme.MIN)

        unchanged = tree_equal(snapshot, services)
        self._write(opcon, services, unchanged)
        return unchanged

    def aggregate_extreme(
        self,
        services: List[Any],
        rule_set: RuleSet,
        extreme: Extreme,
    ) -> List[Any]:
        """
        Fold every live tenant into a summary and merge it into ``services``.

        Args:
            services: The OperandConfig services list
            rule_set: Parsed rules
            extreme: Extreme.MAX to grow, Extreme.MIN to shrink

        Returns:
            A new services list
        """
        contributions = [
            TenantContribution.from_common_service(obj, self.size_templates)
            for obj in self.live_tenants()
        ]

        controller_modes: Dict[str, str] = {}
        for contribution in contributions:
            controller_modes = merge_controller_modes(controller_modes, contribution.controller_modes)

        summary: List[Dict[str, Any]] = []
        for contribution in contributions:
            summary = self._fold_tenant(summary, contribution, rule_set, controller_modes)

        logger.debug(f"Aggregating {len(contributions)} tenant(s) with extreme={extreme.value}")
        return self._apply_summary(services, summary, rule_set, controller_modes, extreme)

    def live_tenants(self) -> List[Dict[str, Any]]:
        """List tenants that are neither clones nor being deleted, in fold order."""
        tenants = []
        for obj in self.client.list_common_services():
            key = f"{as_str(get_path(obj, 'metadata', 'namespace'))}/{as_str(get_path(obj, 'metadata', 'name'))}"
            if is_clone(obj):
                logger.debug(f"Ignoring cloned CommonService {key}")
                continue
            if is_being_deleted(obj):
                logger.debug(f"Ignoring CommonService {key}: being deleted")
                continue
            tenants.append(obj)

        tenants.sort(key=lambda obj: (
            as_str(get_path(obj, "metadata", "namespace")),
            as_str(get_path(obj, "metadata", "name")),
        ))
        return tenants

    @property
    def _key(self) -> str:
        return f"{self.namespace}/{self.opcon_name}"

    def _fetch(self) -> Tuple[Dict[str, Any], List[Any]]:
        opcon = self.client.get_operand_config(self.namespace, self.opcon_name)
        services = as_list(get_path(opcon, "spec", "services"))
        if services is None:
            raise MalformedOperandConfigError(f"OperandConfig {self._key} has no spec.services list")
        return opcon, copy_tree(services)

    def _write(self, opcon: Dict[str, Any], services: List[Any], unchanged: bool) -> None:
        opcon["spec"]["services"] = services

        if self.dry_run:
            logger.info(f"[DRY-RUN] Would update OperandConfig {self._key} (unchanged={unchanged})")
            return

        self.client.update_operand_config(opcon)
        if unchanged:
            logger.debug(f"OperandConfig {self._key} is up to date")
        else:
            logger.info(f"Updated OperandConfig {self._key}")

    def _complete_resources(self, resources: List[Any], owner: str) -> List[Dict[str, Any]]:
        """Resource overrides with a full identity; the rest are skipped with a warning."""
        complete = []
        for resource in resources:
            try:
                resource_identity(resource, self.namespace)
            except IncompleteResourceIdentityError as e:
                logger.warning(f"Skipping merging resource {e} from {owner}")
                continue
            complete.append(resource)
        return complete

    def _apply_service(
        self,
        service: Dict[str, Any],
        new_config: Dict[str, Any],
        rule_set: RuleSet,
        mode: str,
    ) -> None:
        """Merge one tenant service config straight into the canonical service."""
        operand = service["name"]
        independent = is_independent_mode(mode)

        canonical_spec = as_map(service.get("spec"))
        tenant_spec = as_map(new_config.get("spec")) or {}
        for kind in list(canonical_spec or {}):
            kind_rules = rule_set.rules_for_kind(operand, kind)
            kind_spec = canonical_spec[kind]
            if independent:
                kind_spec = reset_managed_fields(kind_spec, kind_rules)
                canonical_spec[kind] = kind_spec

            tenant_kind_spec = tenant_spec.get(kind)
            if tenant_kind_spec is None:
                continue
            if as_map(kind_spec) is None or as_map(tenant_kind_spec) is None:
                logger.warning(f"Skipping {operand}.spec.{kind}: not a map")
                continue
            if independent:
                tenant_kind_spec = reset_managed_fields(tenant_kind_spec, kind_rules)

            if kind_rules is not None:
                canonical_spec[kind] = rule_filtered_merge(
                    kind_spec, tenant_kind_spec, kind_rules, overwrite=True, direct_assign=True
                )
            else:
                canonical_spec[kind] = rule_filtered_merge(
                    kind_spec, tenant_kind_spec, {}, overwrite=True, direct_assign=False
                )

        canonical_resources = as_list(service.get("resources"))
        tenant_resources = as_list(new_config.get("resources"))
        if canonical_resources is None or tenant_resources is None:
            return
        tenant_resources = self._complete_resources(tenant_resources, f"service config {operand}")

        for index, resource in enumerate(canonical_resources):
            try:
                identity = resource_identity(resource, self.namespace)
            except IncompleteResourceIdentityError as e:
                logger.warning(f"Skipping merging resource {e} in OperandConfig {self._key}")
                continue

            match = find_by_identity(tenant_resources, *identity, self.namespace)
            if match is None:
                continue
            if independent:
                match = reset_managed_limits(match)
            canonical_resources[index] = rule_filtered_merge(
                resource, match, None, overwrite=True, direct_assign=True
            )

    def _fold_tenant(
        self,
        summary: List[Dict[str, Any]],
        contribution: TenantContribution,
        rule_set: RuleSet,
        controller_modes: Dict[str, str],
    ) -> List[Dict[str, Any]]:
        """Fold one tenant into the summary, keeping the larger value on conflicts."""
        summary = copy_tree(summary)

        for service in contribution.services:
            operand = service["name"]
            independent = is_independent_mode(resolve_mode(controller_modes, operand))
            existing = find_by_name(summary, operand) or {}

            spec = dict(as_map(existing.get("spec")) or {})
            for kind, kind_spec in service["spec"].items():
                kind_rules = rule_set.rules_for_kind(operand, kind)
                if kind_rules is None:
                    logger.debug(f"No rules for {operand}/{kind}, not aggregated")
                    continue
                if independent:
                    kind_spec = reset_managed_fields(kind_spec, kind_rules)
                spec[kind] = rule_filtered_merge(
                    spec.get(kind) or {}, kind_spec, kind_rules, overwrite=False, direct_assign=False
                )
            upsert_spec_by_name(summary, operand, spec)

            resources = list(as_list(existing.get("resources")) or [])
            for resource in self._complete_resources(service["resources"], contribution.key):
                identity = resource_identity(resource, self.namespace)
                if independent:
                    resource = reset_managed_limits(resource)
                summarized = find_by_identity(resources, *identity, self.namespace)
                if summarized is None:
                    resources.append(copy_tree(resource))
                    continue
                index = next(i for i, item in enumerate(resources) if item is summarized)
                resources[index] = rule_filtered_merge(
                    summarized, resource, None, overwrite=True, direct_assign=False
                )
            upsert_resources_by_name(summary, operand, resources)

        return summary

    def _apply_summary(
        self,
        services: List[Any],
        summary: List[Dict[str, Any]],
        rule_set: RuleSet,
        controller_modes: Dict[str, str],
        extreme: Extreme,
    ) -> List[Any]:
        """Merge the tenant summary into the canonical services."""
        services = copy_tree(services)

        for service in services:
            service_map = as_map(service)
            if service_map is None:
                continue
            operand = as_str(service_map.get("name"))
            independent = is_independent_mode(resolve_mode(controller_modes, operand))
            summarized = find_by_name(summary, operand)

            spec = as_map(service_map.get("spec"))
            for kind in list(spec or {}):
                kind_spec = spec[kind]
                if independent:
                    kind_spec = reset_managed_fields(kind_spec, rule_set.rules_for_kind(operand, kind))
                    spec[kind] = kind_spec
                summary_kind_spec = get_path(summarized, "spec", kind)
                if summary_kind_spec is None:
                    continue
                spec[kind] = extreme_merge(kind_spec, summary_kind_spec, extreme)

            resources = as_list(service_map.get("resources"))
            summary_resources = as_list(get_path(summarized, "resources"))
            if resources is None or not summary_resources:
                continue
            for index, resource in enumerate(resources):
                try:
                    identity = resource_identity(resource, self.namespace)
                except IncompleteResourceIdentityError as e:
                    logger.warning(f"Skipping merging resource {e} in OperandConfig {self._key}")
                    continue
                match = find_by_identity(summary_resources, *identity, self.namespace)
                if match is not None:
                    resources[index] = extreme_merge(resource, match, extreme)

        return services
