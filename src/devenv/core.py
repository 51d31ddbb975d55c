import logging
import subprocess
from typing import List, Optional

from rich.console import Console

from .errors import DevEnvError
from .models import ContainerHandle, DistroTarget, HostIdentity, LaunchConfig, MappedIdentity
from .services.command_runner import CommandRunner
from .services.distro import DistroSelector
from .services.docker_runtime import ContainerReaper, DockerRuntimeService
from .services.identity import IdentityService, host_identity

console = Console()
logger = logging.getLogger("devenv")


class DevEnv:
    """Builds, starts and enters the project's development container."""

    def __init__(self, config: LaunchConfig, default_distro: Optional[str] = None):
        self.config = config
        self.default_distro = default_distro

        self.command_runner = CommandRunner(logger=logger)
        self.distro_selector = DistroSelector(project_root=config.project_root, logger=logger)
        self.docker_runtime_service = DockerRuntimeService(logger=logger, console=console)
        self.identity_service = IdentityService(logger=logger, console=console)
        self.reaper: Optional[ContainerReaper] = None

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output)

    def _host_identity(self) -> HostIdentity:
        return host_identity()

    def select_target(self) -> DistroTarget:
        target = self.distro_selector.select(
            explicit=self.config.distro,
            default=self.default_distro,
            image=self.config.image,
            build=self.config.build,
        )
        logger.info("Selected distro %s (image %s)", target.name or "<none>", target.image)
        return target

    def build_image(self, target: DistroTarget):
        self.docker_runtime_service.build_image(target, self._run_cmd)

    def start_container(self, image: str) -> ContainerHandle:
        self.reaper = ContainerReaper(
            runtime_service=self.docker_runtime_service,
            run_cmd=self._run_cmd,
            logger=logger,
        )
        self.reaper.arm()
        try:
            handle = self.docker_runtime_service.start_container(
                image=image,
                project_root=self.config.project_root,
                folder_name=self.config.mount_folder,
                keep=self.config.keep,
                run_cmd=self._run_cmd,
            )
        except DevEnvError:
            self.reaper.raise_pending()
            raise
        self.reaper.attach(handle)
        return handle

    def map_identity(self, handle: ContainerHandle) -> MappedIdentity:
        return self.identity_service.map_identity(handle, self._host_identity(), self._run_cmd)

    def resolve_command(self, handle: ContainerHandle, identity: Optional[MappedIdentity]) -> List[str]:
        if self.config.command:
            return list(self.config.command)
        if identity is not None:
            shell = identity.shell
        else:
            shell = self.identity_service.login_shell(handle, 0, self._run_cmd)
        return [shell, "-l"]

    def exec_command(self, handle: ContainerHandle, identity: Optional[MappedIdentity]) -> int:
        command = self.resolve_command(handle, identity)
        return self.docker_runtime_service.exec_command(
            handle,
            command,
            tty=self.config.tty,
            run_cmd=self._run_cmd,
            identity=identity,
        )

    def cleanup(self):
        if self.reaper is not None:
            self.reaper.stop()

    def run(self) -> int:
        exit_code = 1

        try:
            if not (self.config.build or self.config.run):
                console.print("[dim]Nothing to do: build and run are both disabled.[/dim]")
                logger.info("Build and run disabled, exiting.")
                exit_code = 0
                return exit_code

            target = self.select_target()
            self.docker_runtime_service.validate_environment(self._run_cmd)

            if self.config.build:
                self.build_image(target)

            if not self.config.run:
                exit_code = 0
                return exit_code

            handle = self.start_container(target.image)
            identity = self.map_identity(handle) if self.config.map_user else None
            exit_code = self.exec_command(handle, identity)
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            exit_code = 1
            return exit_code
        except DevEnvError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            exit_code = 1
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            exit_code = 1
            return exit_code
        finally:
            self.cleanup()
