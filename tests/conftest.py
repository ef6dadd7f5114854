from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

CONFIG = """
project_name = "fake"

build "app" {
  main = "src/fake"
  os   = ["linux", "darwin"]
  arch = ["amd64"]
}
"""


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A repository with a buildable project, tagged v0.0.1 then v0.0.2 at HEAD."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    _git(tmp_path, "init", "-q")
    _git(tmp_path, "config", "user.email", "dev@example.com")
    _git(tmp_path, "config", "user.name", "Dev")
    _git(tmp_path, "config", "commit.gpgsign", "false")
    _git(tmp_path, "config", "tag.gpgsign", "false")

    (tmp_path / "relwright.hcl").write_text(CONFIG)
    src = tmp_path / "src" / "fake"
    src.mkdir(parents=True)
    (src / "__main__.py").write_text("print('fake')\n")
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-q", "-m", "feat: first")
    _git(tmp_path, "tag", "v0.0.1")

    (src / "util.py").write_text("VALUE = 1\n")
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-q", "-m", "fix: add util")
    _git(tmp_path, "tag", "v0.0.2")
    return tmp_path
