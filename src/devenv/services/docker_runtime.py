"""Docker runtime services for dev-env."""

import atexit
import posixpath
import signal
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from devenv.constants import BUILD_RECIPE, MOUNT_ROOT
from devenv.errors import BuildError, CommandFailed, ContainerError
from devenv.errors_catalog import actionable_error
from devenv.models import ContainerHandle, DistroTarget, MappedIdentity


class DockerRuntimeService:
    """Builds images and drives the lifecycle of the dev container."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def validate_environment(self, run_cmd: Callable):
        self.console.print("[blue]Validating Docker environment...[/blue]")
        run_cmd(["docker", "--version"], capture_output=True)

    def build_image(self, target: DistroTarget, run_cmd: Callable):
        context = target.context_dir
        if context is None or not context.is_dir():
            raise BuildError(f"Build context directory not found: {context}")

        recipe = context / BUILD_RECIPE
        if not recipe.is_file():
            raise BuildError(
                actionable_error("missing_build_context", distro=target.name, path=str(recipe))
            )

        self.console.print(f"[blue]Building image {target.image} from {context}...[/blue]")
        self.logger.info("Building image %s", target.image)
        try:
            run_cmd(["docker", "build", "-t", target.image, "-f", str(recipe), str(context)])
        except CommandFailed as exc:
            raise BuildError(
                actionable_error("image_build_failed", image=target.image, path=str(context))
            ) from exc
        self.console.print(f"[green]Image {target.image} is ready.[/green]")

    @staticmethod
    def workdir_for(folder_name: str) -> str:
        return posixpath.join(MOUNT_ROOT, folder_name)

    def start_container(
        self,
        image: str,
        project_root: Path,
        folder_name: str,
        keep: bool,
        run_cmd: Callable,
    ) -> ContainerHandle:
        workdir = self.workdir_for(folder_name)
        cmd = ["docker", "run", "--detach", "--init"]
        if not keep:
            cmd.append("--rm")
        cmd += [
            "--volume",
            f"{project_root}:{workdir}",
            "--workdir",
            workdir,
            "--entrypoint",
            "tail",
            image,
            "-f",
            "/dev/null",
        ]

        try:
            result = run_cmd(cmd, capture_output=True)
        except CommandFailed as exc:
            raise ContainerError(
                f"{actionable_error('container_start_failed', image=image)}\n{exc}"
            ) from exc

        lines = (result.stdout or "").strip().splitlines()
        if not lines:
            raise ContainerError(actionable_error("container_start_failed", image=image))

        handle = ContainerHandle(container_id=lines[-1].strip(), workdir=workdir, keep=keep)
        self.logger.info("Started container %s from %s", handle.container_id[:12], image)
        return handle

    def build_exec_command(
        self,
        handle: ContainerHandle,
        command: Sequence[str],
        tty: bool,
        identity: Optional[MappedIdentity] = None,
    ) -> List[str]:
        cmd = ["docker", "exec", "--interactive"]
        if tty:
            cmd.append("--tty")
        if identity is not None:
            cmd += [
                "--user",
                f"{identity.uid}:{identity.gid}",
                "--env",
                f"HOME={identity.home}",
                "--env",
                f"USER={identity.user_name}",
            ]
        cmd += ["--workdir", handle.workdir, handle.container_id]
        cmd += list(command)
        return cmd

    def exec_command(
        self,
        handle: ContainerHandle,
        command: Sequence[str],
        tty: bool,
        run_cmd: Callable,
        identity: Optional[MappedIdentity] = None,
    ) -> int:
        cmd = self.build_exec_command(handle, command, tty, identity)
        self.logger.info("Running in container: %s", " ".join(command))
        result = run_cmd(cmd, check=False)
        if result.returncode < 0:
            # killed by a signal; report it the way a shell does
            self.logger.warning("Command was killed by signal %s", -result.returncode)
            return 128 - result.returncode
        if result.returncode != 0:
            self.logger.warning("Command exited with status %s", result.returncode)
        return result.returncode

    def stop_container(self, handle: ContainerHandle, run_cmd: Callable):
        self.console.print("[dim]Stopping dev container...[/dim]")
        self.logger.info(
            "Stopping container %s (%s)",
            handle.container_id[:12],
            "keeping it" if handle.keep else "removing it",
        )
        run_cmd(["docker", "stop", handle.container_id], check=False, capture_output=True)


class ContainerReaper:
    """Stops the container on exit, on error and on termination signals.

    ``arm`` installs the handlers before the container is created. A signal
    that arrives while ``docker run`` is still in flight is held until the
    container id is known, so the container can be stopped instead of leaked.
    """

    SIGNALS = tuple(
        getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
    )

    def __init__(
        self,
        runtime_service: DockerRuntimeService,
        run_cmd: Callable,
        logger,
        atexit_module=atexit,
        signal_module=signal,
    ):
        self.runtime_service = runtime_service
        self.run_cmd = run_cmd
        self.logger = logger
        self.atexit = atexit_module
        self.signal = signal_module
        self.handle: Optional[ContainerHandle] = None
        self.pending_signal: Optional[int] = None
        self._armed = False
        self._previous_handlers: Dict[int, object] = {}

    def arm(self):
        if self._armed:
            return
        self._armed = True
        self.atexit.register(self.stop)
        for signum in self.SIGNALS:
            try:
                self._previous_handlers[signum] = self.signal.signal(signum, self._on_signal)
            except ValueError:
                # signal handlers can only be installed from the main thread
                self.logger.debug("Could not install handler for signal %s", signum)

    def attach(self, handle: ContainerHandle):
        self.handle = handle
        self.raise_pending()

    def raise_pending(self):
        signum, self.pending_signal = self.pending_signal, None
        if signum is not None:
            raise SystemExit(128 + signum)

    def _on_signal(self, signum, _frame):
        if self.handle is None:
            self.logger.info("Received signal %s while the container starts, stopping it once it is up.", signum)
            self.pending_signal = signum
            return
        self.logger.info("Received signal %s, shutting down.", signum)
        raise SystemExit(128 + signum)

    def disarm(self):
        if not self._armed:
            return
        self._armed = False
        self.atexit.unregister(self.stop)
        for signum, previous in self._previous_handlers.items():
            if previous is not None:
                self.signal.signal(signum, previous)
        self._previous_handlers = {}

    def stop(self):
        handle, self.handle = self.handle, None
        try:
            if handle is not None:
                self.runtime_service.stop_container(handle, self.run_cmd)
        finally:
            self.disarm()
