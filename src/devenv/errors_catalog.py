"""Actionable error catalog for dev-env."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_build_context": {
        "what": "No build recipe found for distro '{distro}' at {path}.",
        "next": "Create `{path}` or pick another distro with `--distro`.",
    },
    "no_distros": {
        "what": "No distro build contexts found under {path}.",
        "next": "Add a `<distro>/Dockerfile` there, or pass `--image` together with `--no-build`.",
    },
    "image_build_failed": {
        "what": "Building image {image} failed.",
        "next": "Fix the Dockerfile in {path} and retry, or reuse an existing image with `--no-build`.",
    },
    "container_start_failed": {
        "what": "Could not start a container from image {image}.",
        "next": "Check that the image exists (`docker image ls`) and that the Docker daemon is running.",
    },
    "missing_launcher_version": {
        "what": "Could not find a DEV_ENV_VERSION line in {path}.",
        "next": "Restore the version line from the upstream launcher before upgrading.",
    },
    "unknown_merge_tool": {
        "what": "Merge tool '{tool}' is not supported.",
        "next": "Set `merge_tool` in settings to one of: {supported}.",
    },
    "missing_upstream_repo": {
        "what": "No upstream repository is configured for the launcher.",
        "next": "Set `upstream_repo: <owner>/<repo>` in {path} to the GitHub repository that publishes the launcher.",
    },
    "merge_conflict": {
        "what": "The merge of {path} left conflicts ({tool} exited with {returncode}).",
        "next": "Resolve the markers in `{conflict_path}` and move it over `{path}`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
