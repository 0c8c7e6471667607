"""Built-in size profile templates.

A CommonService may ask for a named size instead of spelling out every
replica count and resource request. Each template is a list of service
configs that is laid under the tenant's own services.
"""

from functools import lru_cache
from typing import Any, Dict, List

import yaml

from .errors import MalformedRuleDocumentError

SIZE_TEMPLATES = """
starterset:
  - name: ibm-im-operator
    spec:
      authentication:
        replicas: 1
  - name: ibm-idp-config-ui-operator
    spec:
      commonWebUI:
        replicas: 1
  - name: common-service-postgresql
    spec:
      cluster:
        instances: 1
small:
  - name: ibm-im-operator
    spec:
      authentication:
        replicas: 1
        authService:
          resources:
            limits:
              cpu: 1000m
              memory: 1090Mi
            requests:
              cpu: 300m
              memory: 400Mi
  - name: ibm-idp-config-ui-operator
    spec:
      commonWebUI:
        replicas: 1
        resources:
          limits:
            cpu: 1000m
            memory: 512Mi
          requests:
            cpu: 300m
            memory: 256Mi
  - name: common-service-postgresql
    spec:
      cluster:
        instances: 2
medium:
  - name: ibm-im-operator
    spec:
      authentication:
        replicas: 2
        authService:
          resources:
            limits:
              cpu: 1000m
              memory: 1090Mi
            requests:
              cpu: 600m
              memory: 550Mi
  - name: ibm-idp-config-ui-operator
    spec:
      commonWebUI:
        replicas: 2
        resources:
          limits:
            cpu: 1000m
            memory: 512Mi
          requests:
            cpu: 300m
            memory: 256Mi
  - name: common-service-postgresql
    spec:
      cluster:
        instances: 2
large:
  - name: ibm-im-operator
    spec:
      authentication:
        replicas: 3
        authService:
          resources:
            limits:
              cpu: 2000m
              memory: 2Gi
            requests:
              cpu: 1000m
              memory: 1Gi
  - name: ibm-idp-config-ui-operator
    spec:
      commonWebUI:
        replicas: 3
        resources:
          limits:
            cpu: 2000m
            memory: 1Gi
          requests:
            cpu: 500m
            memory: 512Mi
  - name: common-service-postgresql
    spec:
      cluster:
        instances: 3
"""


@lru_cache(maxsize=1)
def _parse_templates() -> Dict[str, List[Dict[str, Any]]]:
    try:
        templates = yaml.safe_load(SIZE_TEMPLATES)
    except yaml.YAMLError as e:
        raise MalformedRuleDocumentError(f"failed to parse size templates: {e}") from e
    if not isinstance(templates, dict):
        raise MalformedRuleDocumentError("size templates must be a map of profile to services")
    return templates


def load_size_templates() -> Dict[str, List[Dict[str, Any]]]:
    """Return the size templates keyed by profile name.

    The returned structure is shared; callers must copy before mutating.
    """
    return _parse_templates()
