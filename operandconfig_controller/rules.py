"""Configuration rules governing which fields tenants may influence.

The rules document is a YAML list of ``{name, spec}`` records, one per
operand. Under ``spec`` each CR kind maps to a rule tree: a key present in the
tree may be set by tenants, and the leaf value is only a marker.
"""

import logging
from typing import Any, Dict, List, Optional

import yaml

from .errors import MalformedRuleDocumentError
from .tree import as_map

logger = logging.getLogger(__name__)

LARGEST_VALUE = "LARGEST_VALUE"

CONFIGURATION_RULES = """
- name: ibm-im-operator
  spec:
    authentication:
      replicas: LARGEST_VALUE
      authService:
        resources:
          limits:
            cpu: LARGEST_VALUE
            memory: LARGEST_VALUE
          requests:
            cpu: LARGEST_VALUE
            memory: LARGEST_VALUE
      identityManager:
        resources:
          limits:
            cpu: LARGEST_VALUE
            memory: LARGEST_VALUE
          requests:
            cpu: LARGEST_VALUE
            memory: LARGEST_VALUE
      identityProvider:
        resources:
          limits:
            cpu: LARGEST_VALUE
            memory: LARGEST_VALUE
          requests:
            cpu: LARGEST_VALUE
            memory: LARGEST_VALUE
      config:
        fipsEnabled: LARGEST_VALUE
- name: ibm-idp-config-ui-operator
  spec:
    commonWebUI:
      replicas: LARGEST_VALUE
      resources:
        limits:
          cpu: LARGEST_VALUE
          memory: LARGEST_VALUE
        requests:
          cpu: LARGEST_VALUE
          memory: LARGEST_VALUE
- name: ibm-mongodb-operator
  spec:
    mongoDB:
      replicas: LARGEST_VALUE
      resources:
        limits:
          cpu: LARGEST_VALUE
          memory: LARGEST_VALUE
        requests:
          cpu: LARGEST_VALUE
          memory: LARGEST_VALUE
- name: common-service-postgresql
  spec:
    cluster:
      instances: LARGEST_VALUE
      postgresql:
        parameters:
          max_connections: LARGEST_VALUE
          shared_buffers: LARGEST_VALUE
      resources:
        limits:
          cpu: LARGEST_VALUE
          memory: LARGEST_VALUE
        requests:
          cpu: LARGEST_VALUE
          memory: LARGEST_VALUE
"""


class RuleSet:
    """Parsed rules document, indexed by operand name."""

    def __init__(self, records: List[Dict[str, Any]]):
        self._by_name: Dict[str, Dict[str, Any]] = {}
        for record in records:
            self._by_name[record["name"]] = record

    def rules_for(self, operand: str) -> Optional[Dict[str, Any]]:
        """The ``spec`` rule map for an operand, or None."""
        record = self._by_name.get(operand)
        if record is None:
            return None
        return as_map(record.get("spec"))

    def rules_for_kind(self, operand: str, kind: str) -> Optional[Dict[str, Any]]:
        """The rule tree for one CR kind of an operand, or None."""
        return as_map((self.rules_for(operand) or {}).get(kind))


def load_rules(text: str) -> RuleSet:
    """
    Parse a rules document.

    Args:
        text: YAML text of the rules document

    Returns:
        The parsed RuleSet

    Raises:
        MalformedRuleDocumentError: If the text is not valid YAML or not a
            list of records with a name and a map spec
    """
    try:
        records = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MalformedRuleDocumentError(f"failed to parse rules: {e}") from e

    if records is None:
        records = []
    if not isinstance(records, list):
        raise MalformedRuleDocumentError(
            f"rules must be a list, got {type(records).__name__}"
        )

    for index, record in enumerate(records):
        if not isinstance(record, dict) or not isinstance(record.get("name"), str):
            raise MalformedRuleDocumentError(f"rule {index} has no name")
        spec = record.get("spec")
        if spec is not None and not isinstance(spec, dict):
            raise MalformedRuleDocumentError(
                f"rule {record['name']} has a spec that is not a map"
            )

    logger.debug(f"Loaded rules for {len(records)} operand(s)")
    return RuleSet(records)


def read_rules_file(path: str) -> str:
    """Read a rules document from disk."""
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise MalformedRuleDocumentError(f"cannot read rules file {path}: {e}") from e
