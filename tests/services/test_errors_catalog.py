import pytest

from devenv.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("missing_build_context", distro="alpine", path="/p/.dev-env/alpine/Dockerfile")

    assert "No build recipe found for distro 'alpine'" in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError, match="Unknown error catalog key"):
        actionable_error("does_not_exist")


def test_missing_upstream_repo_names_the_settings_key():
    message = actionable_error("missing_upstream_repo", path=".dev-env/settings.yml")

    assert "upstream_repo" in message
    assert ".dev-env/settings.yml" in message
