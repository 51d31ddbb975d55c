"""Self-upgrade of the project's vendored launcher script."""

import logging
import posixpath
import subprocess
from typing import List

import requests
from rich.console import Console

from .constants import DEV_ENV_DIR, LAUNCHER_VERSION_PATTERN, SETTINGS_FILE
from .errors import ConfigError, DevEnvError, MergeConflict
from .errors_catalog import actionable_error
from .models import UpgradeConfig
from .services.command_runner import CommandRunner
from .services.fetch import ArtifactFetcher
from .services.filesystem import FileSystemService
from .services.merge import ThreeWayReconciler
from .services.versions import VersionResolver

console = Console()
logger = logging.getLogger("devenv")


def read_launcher_version(text: str) -> str:
    match = LAUNCHER_VERSION_PATTERN.search(text)
    if not match:
        raise ValueError("no DEV_ENV_VERSION line")
    return match.group(1)


class SelfUpgrader:
    """Merges upstream launcher changes into the local, possibly edited, launcher."""

    def __init__(self, config: UpgradeConfig):
        self.config = config

        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.version_resolver = VersionResolver(
            repo=config.upstream_repo,
            logger=logger,
            requests_module=requests,
        )
        self.fetcher = ArtifactFetcher(
            repo=config.upstream_repo,
            path=config.upstream_path,
            logger=logger,
            requests_module=requests,
        )
        self.reconciler = ThreeWayReconciler(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
        )

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output)

    def read_current(self) -> str:
        path = self.config.launcher_path
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Could not read launcher '{path}': {exc}") from exc

    def base_version(self, current: str) -> str:
        try:
            return read_launcher_version(current)
        except ValueError as exc:
            raise ConfigError(
                actionable_error("missing_launcher_version", path=str(self.config.launcher_path))
            ) from exc

    def run(self) -> int:
        exit_code = 1

        try:
            if not self.config.upstream_repo:
                raise ConfigError(
                    actionable_error(
                        "missing_upstream_repo", path=posixpath.join(DEV_ENV_DIR, SETTINGS_FILE)
                    )
                )

            current = self.read_current()
            base_tag = self.base_version(current)

            console.print("[blue]Resolving upstream version...[/blue]")
            target_tag = self.version_resolver.resolve(self.config.target_version)
            logger.info("Launcher is at %s, upstream target is %s", base_tag, target_tag)

            if target_tag == base_tag:
                console.print(f"[green]dev-env is already up to date ({base_tag}).[/green]")
                exit_code = 0
                return exit_code

            base, upstream = self.fetcher.fetch_many([base_tag, target_tag])
            self.reconciler.reconcile(
                base=base,
                current=current,
                upstream=upstream,
                output_path=self.config.launcher_path,
                run_cmd=self._run_cmd,
                tool_override=self.config.merge_tool,
            )
            console.print(f"[green]Upgraded dev-env from {base_tag} to {target_tag}.[/green]")
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return exit_code
        except MergeConflict as exc:
            console.print(f"[bold yellow]Merge conflict:[/bold yellow] {exc}")
            logger.error(str(exc))
            return exit_code
        except DevEnvError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return exit_code
