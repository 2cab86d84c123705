"""Tests for the command line entry point."""

import pytest
import yaml
from click.testing import CliRunner

from brigade_cd.main import cli
from brigade_cd.store import MemoryBuildStore


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "store": {"backend": "memory"},
                "resources": {"mappings": ["g=cd.brigade.sh,v=v1,k=Terraform,p=octo/infra"]},
                "projects": [{"name": "octo/infra"}],
            }
        )
    )
    return path


def _manifest(tmp_path, annotations):
    path = tmp_path / "network.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "apiVersion": "cd.brigade.sh/v1",
                "kind": "Terraform",
                "metadata": {"name": "network", "annotations": annotations},
            }
        )
    )
    return path


class TestReconcileCommand:
    def test_prints_completed_object(self, tmp_path, config_file):
        manifest = _manifest(tmp_path, {"cd.brigade.sh/approved": "false"})
        result = CliRunner().invoke(
            cli, ["reconcile", str(manifest), "--config", str(config_file), "--log-level", "ERROR"]
        )

        assert result.exit_code == 0, result.output
        updated = yaml.safe_load(result.output)
        assert updated["status"] == {"phase": "completed"}
        assert updated["metadata"]["name"] == "network"

    def test_unquoted_annotations_apply(self, tmp_path, config_file):
        manifest = tmp_path / "network.yaml"
        manifest.write_text(
            "apiVersion: cd.brigade.sh/v1\n"
            "kind: Terraform\n"
            "metadata:\n"
            "  name: network\n"
            "  annotations:\n"
            "    cd.brigade.sh/approved: yes\n"
            "    cd.brigade.sh/dry-run: false\n"
            "    cd.brigade.sh/github-pull-id: 12\n"
        )
        result = CliRunner().invoke(
            cli, ["reconcile", str(manifest), "--config", str(config_file), "--log-level", "ERROR"]
        )

        assert result.exit_code == 0, result.output
        assert yaml.safe_load(result.output)["status"] == {"phase": "completed"}

    def test_unquoted_annotations_apply_build(self, tmp_path, config_file, monkeypatch):
        recorded = []
        original = MemoryBuildStore.create_build

        async def create_build(self, build):
            recorded.append(build)
            await original(self, build)

        monkeypatch.setattr(MemoryBuildStore, "create_build", create_build)
        manifest = tmp_path / "network.yaml"
        manifest.write_text(
            "apiVersion: cd.brigade.sh/v1\n"
            "kind: Terraform\n"
            "metadata:\n"
            "  name: network\n"
            "  annotations: {cd.brigade.sh/approved: yes, cd.brigade.sh/dry-run: no}\n"
        )
        result = CliRunner().invoke(
            cli, ["reconcile", str(manifest), "--config", str(config_file), "--log-level", "ERROR"]
        )

        assert result.exit_code == 0, result.output
        assert [b.type for b in recorded] == ["terraform:apply"]

    def test_wrong_api_version(self, tmp_path, config_file):
        manifest = tmp_path / "network.yaml"
        manifest.write_text("apiVersion: cd.brigade.sh/v2\nkind: Terraform\nmetadata: {name: network}\n")
        result = CliRunner().invoke(cli, ["reconcile", str(manifest), "--config", str(config_file)])
        assert result.exit_code != 0
        assert "no resource mapping" in result.output

    def test_unmapped_kind(self, tmp_path, config_file):
        manifest = tmp_path / "chart.yaml"
        manifest.write_text("apiVersion: v1\nkind: Helm\nmetadata: {name: web}\n")
        result = CliRunner().invoke(cli, ["reconcile", str(manifest), "--config", str(config_file)])
        assert result.exit_code != 0
        assert "no resource mapping" in result.output

    def test_bad_annotation(self, tmp_path, config_file):
        manifest = _manifest(tmp_path, {"cd.brigade.sh/github-app-inst-id": "abc"})
        result = CliRunner().invoke(cli, ["reconcile", str(manifest), "--config", str(config_file)])
        assert result.exit_code != 0
        assert "ParseError" in result.output

    def test_missing_config(self, tmp_path):
        manifest = _manifest(tmp_path, {})
        result = CliRunner().invoke(
            cli, ["reconcile", str(manifest), "--config", str(tmp_path / "nope.yaml")]
        )
        assert result.exit_code != 0
        assert "does not exist" in result.output


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "brigade-cd" in result.output
