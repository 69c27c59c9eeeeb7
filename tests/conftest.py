"""Shared fixtures for fsleash tests."""

from __future__ import annotations

import os

import pytest

from fsleash.core.config import FsleashConfig
from fsleash.core.resolver import PathResolver
from fsleash.core.safety.audit import AuditLogger
from fsleash.core.safety.sandbox import SandboxBoundary
from fsleash.core.session import FilesystemSession
from fsleash.fs.service import FilesystemService


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Prevent .env file and shell env from leaking into tests.

    FsleashConfig.model_config has env_file=".env" which loads the project
    .env relative to cwd. Nullify it at the source.
    """
    monkeypatch.setitem(FsleashConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("FSLEASH_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def session():
    return FilesystemSession()


@pytest.fixture
def sandbox(tmp_path):
    return SandboxBoundary(str(tmp_path))


@pytest.fixture
def resolver(sandbox):
    return PathResolver(sandbox)


@pytest.fixture
def open_resolver():
    """Resolver with no base directory configured."""
    return PathResolver(SandboxBoundary())


@pytest.fixture
def service(resolver):
    return FilesystemService(resolver)


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(tmp_path / "audit.jsonl")
