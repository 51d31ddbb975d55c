"""Shared constants for dev-env."""

import re

DEV_ENV_DIR = ".dev-env"
SETTINGS_FILE = "settings.yml"
BUILD_RECIPE = "Dockerfile"
IMAGE_SUFFIX = "dev-env"
MOUNT_ROOT = "/workspace"

LAUNCHER_FILE = "dev-env"
DEFAULT_UPSTREAM_PATH = "dev-env"
GITHUB_API_URL = "https://api.github.com"
GITHUB_RAW_URL = "https://raw.githubusercontent.com"
HTTP_TIMEOUT = 60

LAUNCHER_VERSION_PATTERN = re.compile(
    r"""^\s*(?:readonly\s+|export\s+)?DEV_ENV_VERSION\s*=\s*["']?([A-Za-z0-9._+-]+)["']?""",
    re.MULTILINE,
)

SUDOERS_MODE = "0440"
