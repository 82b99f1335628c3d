"""Shared fixtures: sample kubeconfigs and a throwaway registry."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import yaml

from kubelens.registry import ClusterRegistry, open_registry


def make_kubeconfig(*names: str, current: str | None = None) -> dict[str, Any]:
    """A kubeconfig with one cluster, user and context per name."""
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [
            {
                "name": f"{n}-cluster",
                "cluster": {"server": f"https://{n}.example.com:6443"},
            }
            for n in names
        ],
        "users": [{"name": f"{n}-user", "user": {"token": f"{n}-token"}} for n in names],
        "contexts": [
            {
                "name": n,
                "context": {
                    "cluster": f"{n}-cluster",
                    "user": f"{n}-user",
                    "namespace": "default",
                },
            }
            for n in names
        ],
        "current-context": current or (names[0] if names else ""),
        "preferences": {},
    }


def write_yaml(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture()
def multi_kubeconfig(tmp_path: Path) -> Path:
    """``~/.kube/config``-style file with contexts ``dev`` and ``prod``."""
    return write_yaml(tmp_path / "source" / "config", make_kubeconfig("dev", "prod"))


@pytest.fixture()
def kubeconfigs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "kubeconfigs"
    path.mkdir()
    return path


@pytest.fixture()
def registry(tmp_path: Path) -> Iterator[ClusterRegistry]:
    reg = open_registry(tmp_path / "clusters.db", lock_timeout=0.5)
    yield reg
    reg.close()
