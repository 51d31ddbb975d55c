import subprocess

import pytest

import devenv.services.merge as merge_module
from devenv.errors import FetchError
from devenv.models import UpgradeConfig
from devenv.upgrade import SelfUpgrader, read_launcher_version

LOCAL_LAUNCHER = "#!/bin/sh\nDEV_ENV_VERSION=1.0.0\necho local tweak\n"


class RecordingMerge:
    def __init__(self, returncode=0, merged="#!/bin/sh\nDEV_ENV_VERSION=2.0.0\necho local tweak\n"):
        self.returncode = returncode
        self.merged = merged
        self.calls = []

    def __call__(self, cmd, check=True, capture_output=False):
        self.calls.append(cmd)
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.merged, stderr="")


@pytest.fixture(autouse=True)
def no_git_preference(monkeypatch):
    monkeypatch.setattr(merge_module.shutil, "which", lambda _name: None)


@pytest.fixture
def launcher(tmp_path):
    path = tmp_path / "dev-env"
    path.write_text(LOCAL_LAUNCHER, encoding="utf-8")
    path.chmod(0o755)
    return path


def build_upgrader(
    monkeypatch, launcher, target_version, merge=None, fetched=None, tags=None, upstream_repo="acme/dev-env"
):
    upgrader = SelfUpgrader(
        UpgradeConfig(
            launcher_path=launcher,
            target_version=target_version,
            upstream_repo=upstream_repo,
            upstream_path="dev-env",
        )
    )
    fetched = fetched if fetched is not None else []

    def fake_fetch(tag):
        fetched.append(tag)
        return f"#!/bin/sh\nDEV_ENV_VERSION={tag}\n"

    monkeypatch.setattr(upgrader.fetcher, "fetch", fake_fetch)
    monkeypatch.setattr(upgrader.version_resolver, "list_tags", lambda: list(tags or []))
    monkeypatch.setattr(upgrader, "_run_cmd", merge or RecordingMerge())
    return upgrader


def test_read_launcher_version_supports_shell_and_python_forms():
    assert read_launcher_version("#!/bin/bash\nreadonly DEV_ENV_VERSION='1.4.2'\n") == "1.4.2"
    assert read_launcher_version('DEV_ENV_VERSION = "v2.0.0"\n') == "v2.0.0"
    with pytest.raises(ValueError):
        read_launcher_version("echo no version here\n")


def test_same_version_is_a_noop(monkeypatch, launcher):
    fetched = []
    merge = RecordingMerge()
    upgrader = build_upgrader(monkeypatch, launcher, "1.0.0", merge=merge, fetched=fetched)

    assert upgrader.run() == 0
    assert fetched == []
    assert merge.calls == []
    assert launcher.read_text(encoding="utf-8") == LOCAL_LAUNCHER


def test_new_version_fetches_twice_and_merges_once(monkeypatch, launcher):
    fetched = []
    merge = RecordingMerge()
    upgrader = build_upgrader(monkeypatch, launcher, "2.0.0", merge=merge, fetched=fetched)

    assert upgrader.run() == 0
    assert sorted(fetched) == ["1.0.0", "2.0.0"]
    assert len(merge.calls) == 1
    assert launcher.read_text(encoding="utf-8") == merge.merged


def test_latest_tag_is_resolved_when_no_version_requested(monkeypatch, launcher):
    fetched = []
    upgrader = build_upgrader(
        monkeypatch, launcher, None, fetched=fetched, tags=["0.9.0", "1.10.0", "1.2.0", "nightly"]
    )

    assert upgrader.run() == 0
    assert sorted(fetched) == ["1.0.0", "1.10.0"]


def test_latest_equal_to_base_is_up_to_date(monkeypatch, launcher):
    fetched = []
    upgrader = build_upgrader(monkeypatch, launcher, None, fetched=fetched, tags=["0.9.0", "1.0.0"])

    assert upgrader.run() == 0
    assert fetched == []


def test_conflict_keeps_launcher_and_fails(monkeypatch, launcher):
    merge = RecordingMerge(returncode=1, merged="<<<<<<< current\nx\n=======\ny\n>>>>>>> upstream\n")
    upgrader = build_upgrader(monkeypatch, launcher, "2.0.0", merge=merge)

    assert upgrader.run() == 1
    assert launcher.read_text(encoding="utf-8") == LOCAL_LAUNCHER
    assert (launcher.parent / "dev-env.conflict").read_text(encoding="utf-8").startswith("<<<<<<<")


def test_fetch_failure_leaves_launcher_untouched(monkeypatch, launcher):
    merge = RecordingMerge()
    upgrader = build_upgrader(monkeypatch, launcher, "2.0.0", merge=merge)

    def failing_fetch(tag):
        raise FetchError(f"Launcher version {tag} does not exist in acme/dev-env.")

    monkeypatch.setattr(upgrader.fetcher, "fetch", failing_fetch)

    assert upgrader.run() == 1
    assert merge.calls == []
    assert launcher.read_text(encoding="utf-8") == LOCAL_LAUNCHER


def test_launcher_without_version_line_fails(monkeypatch, launcher):
    launcher.write_text("#!/bin/sh\necho hi\n", encoding="utf-8")
    upgrader = build_upgrader(monkeypatch, launcher, "2.0.0")

    assert upgrader.run() == 1


def test_missing_launcher_fails(monkeypatch, tmp_path):
    upgrader = build_upgrader(monkeypatch, tmp_path / "dev-env", "2.0.0")

    assert upgrader.run() == 1


def test_missing_upstream_repo_fails_before_any_download(monkeypatch, launcher):
    fetched = []
    upgrader = build_upgrader(monkeypatch, launcher, "2.0.0", fetched=fetched, upstream_repo=None)

    assert upgrader.run() == 1
    assert fetched == []
    assert launcher.read_text(encoding="utf-8") == LOCAL_LAUNCHER
