"""Tests for importing contexts and the legacy-config migration sweep."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import make_kubeconfig, write_yaml

from kubelens.credentials.bundle import KubeconfigError, context_names, load_kubeconfig
from kubelens.credentials.importer import import_context
from kubelens.credentials.migration import migrate_legacy_configs
from kubelens.registry import ClusterRegistry, RegistryError
from kubelens.validation import InputValidationError

# --- import_context ---


class TestImportContext:
    def test_registers_isolated_copy(
        self, registry: ClusterRegistry, multi_kubeconfig: Path, kubeconfigs_dir: Path,
    ):
        cluster = import_context(
            registry, multi_kubeconfig, "prod", "Production", kubeconfigs_dir,
            icon="rocket", description="main", tags=["prod"],
        )
        assert cluster.name == "Production"
        assert cluster.context_name == "prod"
        assert Path(cluster.config_path) == kubeconfigs_dir / f"{cluster.id}.yaml"
        assert context_names(load_kubeconfig(cluster.config_path)) == ["prod"]
        assert registry.get(cluster.id) == cluster

    def test_source_file_untouched(
        self, registry: ClusterRegistry, multi_kubeconfig: Path, kubeconfigs_dir: Path,
    ):
        before = multi_kubeconfig.read_text(encoding="utf-8")
        import_context(registry, multi_kubeconfig, "dev", "Dev", kubeconfigs_dir)
        assert multi_kubeconfig.read_text(encoding="utf-8") == before

    def test_invalid_metadata_touches_nothing(
        self, registry: ClusterRegistry, multi_kubeconfig: Path, kubeconfigs_dir: Path,
    ):
        with pytest.raises(InputValidationError):
            import_context(
                registry, multi_kubeconfig, "dev", "Dev", kubeconfigs_dir, tags=["a", "a"],
            )
        assert list(kubeconfigs_dir.iterdir()) == []
        assert registry.list() == []

    def test_unknown_context(
        self, registry: ClusterRegistry, multi_kubeconfig: Path, kubeconfigs_dir: Path,
    ):
        with pytest.raises(KubeconfigError, match="Context 'staging' not found"):
            import_context(registry, multi_kubeconfig, "staging", "S", kubeconfigs_dir)
        assert registry.list() == []

    def test_registry_failure_removes_extracted_file(
        self, registry: ClusterRegistry, multi_kubeconfig: Path, kubeconfigs_dir: Path,
    ):
        with patch.object(registry, "add", side_effect=RegistryError("disk full")):
            with pytest.raises(RegistryError):
                import_context(registry, multi_kubeconfig, "dev", "Dev", kubeconfigs_dir)
        assert list(kubeconfigs_dir.iterdir()) == []

    def test_same_context_twice_gets_two_clusters(
        self, registry: ClusterRegistry, multi_kubeconfig: Path, kubeconfigs_dir: Path,
    ):
        a = import_context(registry, multi_kubeconfig, "dev", "Dev A", kubeconfigs_dir)
        b = import_context(registry, multi_kubeconfig, "dev", "Dev B", kubeconfigs_dir)
        assert a.id != b.id
        assert a.config_path != b.config_path


# --- migrate_legacy_configs ---


class TestMigration:
    def test_missing_dir_returns_empty(self, registry: ClusterRegistry, tmp_path: Path):
        assert migrate_legacy_configs(registry, tmp_path / "absent") == []

    def test_migrates_every_context(self, registry: ClusterRegistry, kubeconfigs_dir: Path):
        write_yaml(kubeconfigs_dir / "legacy.yaml", make_kubeconfig("dev", "prod"))
        migrated = migrate_legacy_configs(registry, kubeconfigs_dir)
        assert migrated == ["dev", "prod"]

        clusters = {c.context_name: c for c in registry.list()}
        assert set(clusters) == {"dev", "prod"}
        assert clusters["dev"].name == "dev"
        for c in clusters.values():
            assert Path(c.config_path).name == f"{c.id}.yaml"
            assert context_names(load_kubeconfig(c.config_path)) == [c.context_name]

    def test_idempotent(self, registry: ClusterRegistry, kubeconfigs_dir: Path):
        write_yaml(kubeconfigs_dir / "legacy.yaml", make_kubeconfig("dev", "prod"))
        migrate_legacy_configs(registry, kubeconfigs_dir)
        files_after_first = sorted(kubeconfigs_dir.iterdir())

        assert migrate_legacy_configs(registry, kubeconfigs_dir) == []
        assert len(registry.list()) == 2
        assert sorted(kubeconfigs_dir.iterdir()) == files_after_first

    def test_skips_already_registered_context(
        self, registry: ClusterRegistry, kubeconfigs_dir: Path,
    ):
        registry.add("Existing", "dev", "/elsewhere/dev.yaml")
        write_yaml(kubeconfigs_dir / "legacy.yaml", make_kubeconfig("dev", "prod"))
        assert migrate_legacy_configs(registry, kubeconfigs_dir) == ["prod"]

    def test_duplicate_context_across_files_migrated_once(
        self, registry: ClusterRegistry, kubeconfigs_dir: Path,
    ):
        write_yaml(kubeconfigs_dir / "a.yaml", make_kubeconfig("shared"))
        write_yaml(kubeconfigs_dir / "b.yaml", make_kubeconfig("shared"))
        assert migrate_legacy_configs(registry, kubeconfigs_dir) == ["shared"]
        assert len(registry.list()) == 1

    def test_invalid_name_skipped_with_warning(
        self, registry: ClusterRegistry, kubeconfigs_dir: Path, caplog: pytest.LogCaptureFixture,
    ):
        write_yaml(kubeconfigs_dir / "legacy.yaml", make_kubeconfig("ok", "bad;name"))
        with caplog.at_level(logging.WARNING, logger="kubelens.credentials.migration"):
            assert migrate_legacy_configs(registry, kubeconfigs_dir) == ["ok"]
        assert "bad;name" in caplog.text

    def test_broken_context_skipped(self, registry: ClusterRegistry, kubeconfigs_dir: Path):
        data = make_kubeconfig("ok", "orphan")
        data["users"] = [u for u in data["users"] if u["name"] != "orphan-user"]
        write_yaml(kubeconfigs_dir / "legacy.yaml", data)
        assert migrate_legacy_configs(registry, kubeconfigs_dir) == ["ok"]
        assert len(list(kubeconfigs_dir.glob("*.yaml"))) == 2

    def test_registry_failure_cleans_up_and_raises(
        self, registry: ClusterRegistry, kubeconfigs_dir: Path,
    ):
        write_yaml(kubeconfigs_dir / "legacy.yaml", make_kubeconfig("dev"))
        with patch.object(registry, "add", side_effect=RegistryError("locked")):
            with pytest.raises(RegistryError):
                migrate_legacy_configs(registry, kubeconfigs_dir)
        assert [p.name for p in kubeconfigs_dir.iterdir()] == ["legacy.yaml"]
