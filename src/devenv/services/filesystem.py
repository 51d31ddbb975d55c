"""Filesystem helpers for dev-env."""

import logging
import os
import stat
import sys
import tempfile
from pathlib import Path
from typing import Optional, Union

from rich.console import Console

from devenv.errors import DevEnvError

PathLike = Union[str, Path]


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def file_mode(self, path: PathLike) -> Optional[int]:
        try:
            return stat.S_IMODE(os.stat(path).st_mode)
        except OSError:
            return None

    def set_permissions(self, path: PathLike, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except OSError as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def atomic_write_text(self, path: PathLike, content: str, mode: Optional[int] = None):
        """Replace ``path`` with ``content`` through a rename in the same directory."""
        target = Path(path)
        keep_mode = mode if mode is not None else self.file_mode(target)

        try:
            fd, temp_path = tempfile.mkstemp(
                prefix=f".{target.name}-", suffix=".tmp", dir=str(target.parent)
            )
        except OSError as exc:
            raise DevEnvError(f"Could not write '{target}': {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as file_obj:
                file_obj.write(content)
            if keep_mode is not None:
                self.set_permissions(temp_path, keep_mode)
            os.replace(temp_path, target)
            self.logger.debug("Replaced %s", target)
        except OSError as exc:
            raise DevEnvError(f"Could not write '{target}': {exc}") from exc
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def remove_file(self, path: PathLike):
        if os.path.exists(path):
            try:
                os.remove(path)
                self.logger.debug("Removed file: %s", path)
            except OSError as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)
