"""Shared fixtures for the OperandConfig Controller tests."""

import copy

import pytest

from operandconfig_controller.errors import ConflictError, NotFoundError

SERVICES_NAMESPACE = "cs-services"

TEST_RULES = """
- name: ibm-im-operator
  spec:
    authentication:
      replicas: LARGEST_VALUE
      authService:
        resources:
          requests:
            cpu: LARGEST_VALUE
            memory: LARGEST_VALUE
- name: common-service-postgresql
  spec:
    cluster:
      instances: LARGEST_VALUE
"""


class FakeCommonServiceClient:
    """In-memory stand-in for CommonServiceClient with resourceVersion-style conflicts."""

    def __init__(self, operand_config, tenants=()):
        self.operand_config = copy.deepcopy(operand_config)
        self.tenants = list(tenants)
        self.updates = []
        self.phases = []
        self.conflicts = 0

    def get_operand_config(self, namespace, name):
        if self.operand_config is None:
            raise NotFoundError(f"OperandConfig {namespace}/{name} not found")
        return copy.deepcopy(self.operand_config)

    def update_operand_config(self, obj):
        if self.conflicts:
            self.conflicts -= 1
            raise ConflictError("OperandConfig was modified concurrently")
        self.operand_config = copy.deepcopy(obj)
        self.updates.append(copy.deepcopy(obj))
        return obj

    def list_common_services(self, label_selector=None):
        return copy.deepcopy(self.tenants)

    def update_common_service_phase(self, name, namespace, phase):
        self.phases.append((namespace, name, phase))
        return True

    def services(self):
        return self.operand_config["spec"]["services"]

    def service(self, name):
        return next(s for s in self.services() if s["name"] == name)


@pytest.fixture
def rules_text():
    return TEST_RULES


@pytest.fixture
def operand_config():
    """An OperandConfig with two operands and one embedded resource."""
    return {
        "apiVersion": "operator.ibm.com/v1alpha1",
        "kind": "OperandConfig",
        "metadata": {
            "name": "common-service",
            "namespace": SERVICES_NAMESPACE,
            "resourceVersion": "100",
        },
        "spec": {
            "services": [
                {
                    "name": "ibm-im-operator",
                    "spec": {
                        "authentication": {
                            "replicas": 1,
                            "authService": {
                                "resources": {
                                    "requests": {"cpu": "500m", "memory": "256Mi"},
                                },
                            },
                            "config": {"image": "quay.io/ibm/im:4.0"},
                        },
                        "navconfig": {"replicas": 2, "banner": "default"},
                    },
                    "resources": [
                        {
                            "apiVersion": "apps/v1",
                            "kind": "Deployment",
                            "name": "im-proxy",
                            "data": {
                                "spec": {
                                    "replicas": 1,
                                    "resources": {"limits": {"cpu": "500m", "memory": "256Mi"}},
                                },
                            },
                        },
                    ],
                },
                {
                    "name": "common-service-postgresql",
                    "spec": {"cluster": {"instances": 1}},
                    "resources": [],
                },
            ],
        },
    }


@pytest.fixture
def common_service():
    """Factory for CommonService objects."""

    def _make(
        name,
        namespace="tenant-a",
        services=None,
        size=None,
        profile_controller=None,
        labels=None,
        deleting=False,
        phase=None,
    ):
        spec = {"services": services or []}
        if size is not None:
            spec["size"] = size
        if profile_controller is not None:
            spec["profileController"] = profile_controller
        metadata = {"name": name, "namespace": namespace, "labels": labels or {}}
        if deleting:
            metadata["deletionTimestamp"] = "2026-10-18T00:00:00Z"
        obj = {
            "apiVersion": "operator.ibm.com/v3",
            "kind": "CommonService",
            "metadata": metadata,
            "spec": spec,
        }
        if phase is not None:
            obj["status"] = {"phase": phase}
        return obj

    return _make


@pytest.fixture
def im_cpu_request():
    """Factory for an ibm-im-operator service config asking for an auth CPU request."""

    def _make(cpu):
        return {
            "name": "ibm-im-operator",
            "spec": {
                "authentication": {
                    "authService": {"resources": {"requests": {"cpu": cpu}}},
                },
            },
        }

    return _make


@pytest.fixture
def fake_client(operand_config):
    return FakeCommonServiceClient(operand_config)
