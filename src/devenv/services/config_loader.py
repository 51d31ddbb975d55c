"""Project settings loader for dev-env."""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from devenv.errors import ConfigError


class ConfigLoader:
    """Loads the YAML project settings used as CLI defaults."""

    BOOLEAN_KEYS = {"build", "keep", "map_user", "run", "tty", "verbose"}
    STRING_KEYS = {
        "distro",
        "folder_name",
        "image",
        "log_file",
        "launcher",
        "upstream_repo",
        "upstream_path",
        "merge_tool",
    }
    SUPPORTED_KEYS = BOOLEAN_KEYS | STRING_KEYS

    def load(self, config_path: Optional[Union[str, Path]]) -> Dict[str, Any]:
        """Return the settings mapping, or an empty one when no file exists."""
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            return {}

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid settings file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError(f"Settings file '{config_path}' must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigError(f"Unknown settings keys in '{config_path}': {unknown_list}")

        for key, value in parsed.items():
            if value is None:
                continue
            if key in self.BOOLEAN_KEYS and not isinstance(value, bool):
                raise ConfigError(f"Settings key '{key}' must be true or false, got {value!r}.")
            if key in self.STRING_KEYS and not isinstance(value, (str, int, float)):
                raise ConfigError(f"Settings key '{key}' must be a string, got {value!r}.")

        return {
            key: (str(value) if key in self.STRING_KEYS and value is not None else value)
            for key, value in parsed.items()
        }
