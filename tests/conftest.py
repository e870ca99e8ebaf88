from __future__ import annotations

from pathlib import Path

import pytest

from kinteg.git.repo import GitRepo
from tests._fixtures.fake_git import FakeGit


@pytest.fixture
def fake_git() -> FakeGit:
    """Provide an empty simulated git executable."""
    return FakeGit()


@pytest.fixture
def repo(tmp_path: Path, fake_git: FakeGit) -> GitRepo:
    """Provide a GitRepo whose commands run against ``fake_git``."""
    return GitRepo(tmp_path, runner=fake_git)
