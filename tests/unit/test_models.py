"""Tests for data models."""

import pytest

from chef_analyze.data.models import (
    CookbookFile,
    CookbookRecord,
    CookbookVersion,
    CookstyleOffense,
    Node,
    NodeReportItem,
)


def _files(*correctable_flags_per_file):
    return [
        CookbookFile(
            path=f"recipes/r{i}.rb",
            offenses=[CookstyleOffense(cop_name="Cop", message="m", correctable=c) for c in flags],
        )
        for i, flags in enumerate(correctable_flags_per_file)
    ]


class TestNode:
    def test_from_dict(self, sample_node):
        node = Node.from_dict(sample_node)

        assert node.name == "node1"
        assert node.chef_environment == "_default"
        assert node.cookbooks == {"foo": "0.1.0"}
        assert node.chef_version == "16.9.20"
        assert node.platform == "ubuntu"
        assert node.platform_version == "20.04"
        assert node.uses_policyfile is False

    def test_to_dict_returns_fetched_object(self, sample_node):
        assert Node.from_dict(sample_node).to_dict() == sample_node

    def test_role_names(self):
        node = Node(name="n", run_list=["recipe[base]", "role[web]", "role:mockrole", " role[db] ", "cookbook1::recipe1"])
        assert node.role_names == ["web", "db"]

    def test_missing_environment_defaults(self):
        assert Node.from_dict({"name": "n", "chef_environment": None}).chef_environment == "_default"

    def test_policyfile_node(self):
        node = Node.from_dict({"name": "n", "policy_name": "web", "policy_group": "prod"})
        assert node.uses_policyfile is True

    def test_missing_attributes(self):
        node = Node.from_dict({"name": "n"})
        assert node.cookbooks == {}
        assert node.chef_version == ""
        assert node.role_names == []


class TestCookbookRecord:
    @pytest.mark.parametrize("files,offenses,correctable", [
        ([], 0, 0),
        (_files([]), 0, 0),
        (_files([True]), 1, 1),
        (_files([True, False], [False]), 3, 1),
        (_files([True, True], [True]), 3, 3),
    ])
    def test_offense_counts(self, files, offenses, correctable):
        record = CookbookRecord(name="c", version="1.0.0", files=files)
        assert record.num_offenses() == offenses
        assert record.num_correctable() == correctable

    def test_nodes_affected(self):
        record = CookbookRecord(name="c", version="1.0.0", nodes=["a", "b"])
        assert record.num_nodes_affected() == 2

    def test_errors_are_independent(self):
        record = CookbookRecord(name="c", version="1.0.0", usage_lookup_error=RuntimeError("x"))
        assert record.has_errors is True
        assert record.download_error is None
        assert record.cookstyle_error is None
        assert CookbookRecord(name="c", version="1.0.0").has_errors is False

    def test_is_artifact(self):
        assert CookbookRecord(name="c", version="1", identifier="abc").is_artifact is True
        assert CookbookRecord(name="c", version="1").is_artifact is False


class TestNodeReportItem:
    def test_os_version_pretty(self):
        assert NodeReportItem(name="n", os="ubuntu", os_version="20.04").os_version_pretty() == "ubuntu v20.04"
        assert NodeReportItem(name="n", os="windows").os_version_pretty() == "windows"
        assert NodeReportItem(name="n").os_version_pretty() == ""

    def test_cookbooks_list_sorted(self):
        item = NodeReportItem(name="n", cookbook_versions=[
            CookbookVersion("test", "9.9"),
            CookbookVersion("mycookbook", "1.0"),
            CookbookVersion("apache2", "5.0.1"),
        ])
        assert item.cookbooks_list() == ["apache2(5.0.1)", "mycookbook(1.0)", "test(9.9)"]

    def test_cookbook_version_str(self):
        assert str(CookbookVersion("foo", "0.1.0")) == "foo(0.1.0)"
