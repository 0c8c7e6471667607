"""Tests for the structural merge primitives."""

import logging

import pytest

from operandconfig_controller.merge import (
    Extreme,
    deep_merge,
    extreme_merge,
    prune_with_rules,
    reset_managed_fields,
    reset_managed_limits,
    rule_filtered_merge,
)
from operandconfig_controller.rules import LARGEST_VALUE
from operandconfig_controller.utils import parse_resource_value

DEFAULT = {
    "replicas": 1,
    "resources": {"limits": {"cpu": "200m", "memory": "1Gi"}},
    "image": "quay.io/ibm/a:1",
    "ports": [{"port": 80}, {"port": 443}],
}
CHANGED = {
    "replicas": 3,
    "resources": {"limits": {"cpu": "100m"}},
    "image": "quay.io/ibm/b:2",
    "ports": [{"port": 8080}],
    "extra": True,
}
RULES = {
    "replicas": LARGEST_VALUE,
    "resources": {"limits": {"cpu": LARGEST_VALUE, "memory": LARGEST_VALUE}},
    "ports": LARGEST_VALUE,
}

MODES = [(overwrite, direct) for overwrite in (True, False) for direct in (True, False)]


def test_prune_with_rules():
    pruned = prune_with_rules(CHANGED, RULES)
    assert pruned == {
        "replicas": 3,
        "resources": {"limits": {"cpu": "100m"}},
        "ports": [{"port": 8080}],
    }


def test_prune_drops_map_under_scalar_rule():
    assert prune_with_rules({"resources": {"cpu": "1"}}, {"resources": LARGEST_VALUE}) == {}


class TestRuleFilteredMerge:
    def test_rules_keep_the_larger_value(self):
        merged = rule_filtered_merge(
            {"replicas": 1, "cpu": "200m", "foo": "bar"},
            {"replicas": 3, "cpu": "100m", "foo": "baz"},
            {"replicas": {}, "cpu": {}},
            overwrite=False,
            direct_assign=False,
        )
        assert merged == {"replicas": 3, "cpu": "200m"}

    def test_direct_assign_takes_the_tenant_value(self):
        merged = rule_filtered_merge(DEFAULT, CHANGED, RULES, overwrite=False, direct_assign=True)
        assert merged == {
            "replicas": 3,
            "resources": {"limits": {"cpu": "100m", "memory": "1Gi"}},
            "ports": [{"port": 8080}, {"port": 443}],
        }

    def test_overwrite_keeps_unruled_fields(self):
        merged = rule_filtered_merge(DEFAULT, CHANGED, RULES, overwrite=True, direct_assign=False)
        assert merged["image"] == "quay.io/ibm/a:1"
        assert merged["extra"] is True
        assert merged["replicas"] == 3
        assert merged["resources"]["limits"] == {"cpu": "200m", "memory": "1Gi"}

    @pytest.mark.parametrize("overwrite, direct", MODES)
    def test_idempotent(self, overwrite, direct):
        once = rule_filtered_merge(DEFAULT, CHANGED, RULES, overwrite, direct)
        twice = rule_filtered_merge(DEFAULT, once, RULES, overwrite, direct)
        assert twice == once

    @pytest.mark.parametrize("overwrite, direct", MODES)
    def test_reflexive(self, overwrite, direct):
        tree = {"replicas": 2, "resources": {"limits": {"cpu": "1"}}}
        assert rule_filtered_merge(tree, tree, RULES, overwrite, direct) == tree

    @pytest.mark.parametrize("direct", [True, False])
    def test_self_merge_drops_unruled_fields_without_overwrite(self, direct):
        tree = {"replicas": 2, "image": "a", "resources": {"limits": {"cpu": "1", "gpu": 1}}}
        merged = rule_filtered_merge(tree, tree, RULES, overwrite=False, direct_assign=direct)
        assert merged == {"replicas": 2, "resources": {"limits": {"cpu": "1"}}}

    @pytest.mark.parametrize("direct", [True, False])
    def test_self_merge_keeps_unruled_fields_with_overwrite(self, direct):
        tree = {"replicas": 2, "image": "a", "resources": {"limits": {"cpu": "1", "gpu": 1}}}
        assert rule_filtered_merge(tree, tree, RULES, overwrite=True, direct_assign=direct) == tree

    @pytest.mark.parametrize("overwrite", [True, False])
    def test_non_comparable_scalar_keeps_default(self, overwrite):
        merged = rule_filtered_merge(
            {"image": "a"}, {"image": "b"}, {"image": LARGEST_VALUE}, overwrite, direct_assign=False
        )
        assert merged["image"] == "a"

    @pytest.mark.parametrize("direct", [True, False])
    def test_result_only_holds_ruled_fields(self, direct):
        merged = rule_filtered_merge(DEFAULT, CHANGED, RULES, overwrite=False, direct_assign=direct)
        assert set(merged) <= set(RULES)
        assert set(merged["resources"]["limits"]) <= set(RULES["resources"]["limits"])

    def test_short_tenant_list_keeps_default_tail(self):
        default = {"items": [{"a": 1}, {"a": 2}, {"a": 3}]}
        merged = rule_filtered_merge(default, {"items": [{"a": 9}]}, None, overwrite=True, direct_assign=True)
        assert merged["items"] == [{"a": 9}, {"a": 2}, {"a": 3}]

    def test_longer_tenant_list_is_appended(self):
        merged = rule_filtered_merge(
            {"items": [1]}, {"items": [1, 2]}, None, overwrite=True, direct_assign=True
        )
        assert merged["items"] == [1, 2]

    def test_type_mismatch_keeps_default(self, caplog):
        with caplog.at_level(logging.WARNING):
            merged = rule_filtered_merge(
                {"resources": {"cpu": "1"}}, {"resources": "big"}, None, overwrite=True, direct_assign=True
            )
        assert merged == {"resources": {"cpu": "1"}}
        assert "Skipping field resources" in caplog.text

    def test_inputs_are_not_mutated(self):
        default = {"replicas": 1, "resources": {"cpu": "1"}}
        changed = {"replicas": 2, "resources": {"cpu": "2"}}
        merged = rule_filtered_merge(default, changed, None, overwrite=True, direct_assign=True)
        merged["resources"]["cpu"] = "9"
        assert default == {"replicas": 1, "resources": {"cpu": "1"}}
        assert changed == {"replicas": 2, "resources": {"cpu": "2"}}


class TestExtremeMerge:
    def test_max_and_min(self):
        default = {"replicas": 2, "resources": {"cpu": "500m", "memory": "1Gi"}}
        changed = {"replicas": 3, "resources": {"cpu": "250m"}}
        assert extreme_merge(default, changed, Extreme.MAX) == {
            "replicas": 3, "resources": {"cpu": "500m", "memory": "1Gi"},
        }
        assert extreme_merge(default, changed, Extreme.MIN) == {
            "replicas": 2, "resources": {"cpu": "250m", "memory": "1Gi"},
        }

    def test_accepts_string_extreme(self):
        assert extreme_merge({"cpu": "1"}, {"cpu": "2"}, "max") == {"cpu": "2"}

    def test_adopts_fields_only_in_changed(self):
        assert extreme_merge({"a": 1}, {"b": {"c": 2}}, Extreme.MIN) == {"a": 1, "b": {"c": 2}}

    def test_incomparable_keeps_default(self):
        assert extreme_merge({"image": "a"}, {"image": "b"}, Extreme.MAX) == {"image": "a"}

    def test_type_mismatch_keeps_default(self, caplog):
        with caplog.at_level(logging.WARNING):
            merged = extreme_merge({"resources": {"cpu": "1"}}, {"resources": ["big"]}, Extreme.MAX)
        assert merged == {"resources": {"cpu": "1"}}
        assert "expected map, got list" in caplog.text

    def test_max_never_shrinks(self):
        current = "100m"
        requests = ["500m", "1", "250m", "2", "1500m"]
        for request in requests:
            current = extreme_merge({"cpu": current}, {"cpu": request}, Extreme.MAX)["cpu"]
            assert parse_resource_value(current) >= parse_resource_value(request)
        assert current == "2"

    def test_min_shrinks_to_remaining_request(self):
        assert extreme_merge({"cpu": "2"}, {"cpu": "1500m"}, Extreme.MIN) == {"cpu": "1500m"}

    def test_reflexive(self):
        tree = {"replicas": 2, "ports": [1, 2]}
        assert extreme_merge(tree, tree, Extreme.MAX) == tree


class TestDeepMerge:
    def test_fills_missing_fields(self):
        template = {"replicas": 1, "resources": {"cpu": "300m", "memory": "400Mi"}}
        tenant = {"replicas": 5, "resources": {"cpu": "1"}}
        assert deep_merge(template, tenant) == {
            "replicas": 5, "resources": {"cpu": "1", "memory": "400Mi"},
        }

    def test_tenant_shape_wins(self):
        assert deep_merge({"resources": {"cpu": "1"}}, {"resources": "none"}) == {"resources": "none"}

    def test_short_list_is_padded(self):
        assert deep_merge({"items": [1, 2, 3]}, {"items": [9]}) == {"items": [9, 2, 3]}


class TestReset:
    def test_reset_managed_fields(self):
        spec = {
            "replicas": 3,
            "resources": {"requests": {"cpu": "1", "memory": "1Gi"}},
            "config": {"image": "a", "fipsEnabled": True},
        }
        rules = {
            "replicas": LARGEST_VALUE,
            "resources": {"requests": {"cpu": LARGEST_VALUE}},
            "config": {"fipsEnabled": LARGEST_VALUE},
        }
        assert reset_managed_fields(spec, rules) == {
            "resources": {"requests": {"memory": "1Gi"}},
            "config": {"image": "a", "fipsEnabled": True},
        }
        assert spec["replicas"] == 3

    def test_reset_without_rules_is_a_copy(self):
        spec = {"replicas": 3}
        assert reset_managed_fields(spec, None) == spec

    def test_reset_managed_limits(self):
        resource = {
            "kind": "Deployment",
            "name": "proxy",
            "data": {"spec": {"resources": {"limits": {"cpu": "1", "memory": "1Gi"}}}},
        }
        reset = reset_managed_limits(resource)
        assert reset["data"]["spec"]["resources"]["limits"] == {"memory": "1Gi"}
        assert resource["data"]["spec"]["resources"]["limits"]["cpu"] == "1"

    def test_reset_managed_limits_without_limits(self):
        resource = {"kind": "ConfigMap", "name": "c", "data": {"data": {"a": "b"}}}
        assert reset_managed_limits(resource) == resource
