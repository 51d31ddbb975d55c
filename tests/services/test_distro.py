import pytest

from devenv.errors import BuildError
from devenv.services.distro import DistroSelector


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


def _project(tmp_path, name="My Project", distros=("alpine", "ubuntu-20.04")):
    root = tmp_path / name
    for distro in distros:
        context = root / ".dev-env" / distro
        context.mkdir(parents=True)
        (context / "Dockerfile").write_text(f"FROM {distro}\n", encoding="utf-8")
    root.mkdir(parents=True, exist_ok=True)
    return root


def test_available_distros_ignores_files_and_hidden_dirs(tmp_path):
    root = _project(tmp_path)
    (root / ".dev-env" / "settings.yml").write_text("distro: alpine\n", encoding="utf-8")
    (root / ".dev-env" / ".cache").mkdir()

    assert DistroSelector(root, DummyLogger()).available_distros() == ["alpine", "ubuntu-20.04"]


def test_select_distro_prefers_flag_then_settings_then_largest(tmp_path):
    selector = DistroSelector(_project(tmp_path), DummyLogger())

    assert selector.select_distro("alpine", "fedora") == "alpine"
    assert selector.select_distro(None, "fedora") == "fedora"
    assert selector.select_distro(None, None) == "ubuntu-20.04"


def test_select_distro_returns_none_without_contexts(tmp_path):
    assert DistroSelector(tmp_path, DummyLogger()).select_distro(None, None) is None


def test_image_tag_is_derived_and_sanitized(tmp_path):
    selector = DistroSelector(_project(tmp_path), DummyLogger())

    assert selector.image_tag("ubuntu-20.04") == "my-project-ubuntu-20.04-dev-env"
    assert selector.image_tag("ubuntu-20.04", image="registry/custom:1") == "registry/custom:1"


def test_select_requires_dockerfile_when_building(tmp_path):
    selector = DistroSelector(_project(tmp_path), DummyLogger())

    with pytest.raises(BuildError, match="No build recipe found for distro 'debian'"):
        selector.select("debian", None, None, build=True)


def test_select_without_build_does_not_require_context(tmp_path):
    selector = DistroSelector(_project(tmp_path), DummyLogger())

    target = selector.select("debian", None, None, build=False)

    assert target.name == "debian"
    assert target.image == "my-project-debian-dev-env"


def test_select_uses_explicit_image_without_any_distro(tmp_path):
    target = DistroSelector(tmp_path, DummyLogger()).select(None, None, "prebuilt:latest", build=False)

    assert target.name is None
    assert target.image == "prebuilt:latest"


def test_select_fails_without_any_distro_when_building(tmp_path):
    with pytest.raises(BuildError, match="No distro build contexts"):
        DistroSelector(tmp_path, DummyLogger()).select(None, None, None, build=True)
