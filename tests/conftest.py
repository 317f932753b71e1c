"""Pytest configuration and shared fixtures for the test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from onboardctl.providers import HostFilesystem
from onboardctl.provisioning import ProvisioningWorkflow
from onboardctl.templates import TemplateEngine
from tests.fakes import FakeIdentity, RecordingFilesystem, WorkflowFactory


@pytest.fixture
def identity() -> FakeIdentity:
    """Return an empty fake identity directory."""
    return FakeIdentity()


@pytest.fixture
def filesystem() -> RecordingFilesystem:
    """Return a recording filesystem that never fails."""
    return RecordingFilesystem()


@pytest.fixture
def home_root(tmp_path: Path) -> Path:
    """Return the directory under which test homes are created."""
    return tmp_path / "home"


@pytest.fixture
def make_workflow(home_root: Path) -> WorkflowFactory:
    """Return a factory building workflows against fakes rooted in *home_root*."""

    def _factory(
        identity: FakeIdentity,
        filesystem: HostFilesystem,
        **overrides: object,
    ) -> ProvisioningWorkflow:
        options: dict[str, object] = {
            "templates": TemplateEngine.with_overrides(None),
            "home_root": home_root,
            "privilege_check": lambda: True,
        }
        options.update(overrides)
        return ProvisioningWorkflow(identity=identity, filesystem=filesystem, **options)

    return _factory
