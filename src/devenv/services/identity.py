"""Host identity projection into the dev container's user database."""

import os
import posixpath
import subprocess
from typing import Callable, List, Optional

from devenv.constants import SUDOERS_MODE
from devenv.errors import CommandFailed, ContainerError
from devenv.models import ContainerHandle, HostIdentity, MappedIdentity

try:
    import grp
    import pwd
except ImportError:  # pragma: no cover - Windows hosts have no user database
    grp = None
    pwd = None


def host_identity() -> HostIdentity:
    uid = os.getuid()
    gid = os.getgid()
    try:
        user_name = pwd.getpwuid(uid).pw_name
    except KeyError:
        user_name = f"user{uid}"
    try:
        group_name = grp.getgrgid(gid).gr_name
    except KeyError:
        group_name = f"group{gid}"
    return HostIdentity(uid=uid, gid=gid, user_name=user_name, group_name=group_name)


def default_map_user() -> bool:
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None or pwd is None:
        return False
    return geteuid() != 0


class IdentityService:
    """Creates (or reuses) the host uid/gid inside a running container.

    Existing entries for the numeric ids are always reused. New entries start
    from the host names; a name already taken by a different id gets
    ``NAME_MARKER`` appended until it is free.
    """

    NAME_MARKER = "_"
    MAX_NAME_ATTEMPTS = 32
    FALLBACK_SHELL = "/bin/sh"

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def _exec_root(
        self,
        handle: ContainerHandle,
        argv: List[str],
        run_cmd: Callable,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd = ["docker", "exec", "--user", "0:0", handle.container_id] + argv
        try:
            return run_cmd(cmd, check=check, capture_output=True)
        except CommandFailed as exc:
            raise ContainerError(f"Identity setup failed in container: {exc}") from exc

    def lookup(
        self, handle: ContainerHandle, database: str, key: str, run_cmd: Callable
    ) -> Optional[List[str]]:
        result = self._exec_root(handle, ["getent", database, key], run_cmd, check=False)
        if result.returncode != 0 or not (result.stdout or "").strip():
            return None
        return result.stdout.strip().splitlines()[0].split(":")

    def free_name(
        self, handle: ContainerHandle, database: str, name: str, run_cmd: Callable
    ) -> str:
        candidate = name
        for _ in range(self.MAX_NAME_ATTEMPTS):
            if self.lookup(handle, database, candidate, run_cmd) is None:
                return candidate
            self.logger.debug("Name '%s' is taken in %s, trying another.", candidate, database)
            candidate += self.NAME_MARKER
        raise ContainerError(
            f"Could not find a free {database} name starting with '{name}' "
            f"after {self.MAX_NAME_ATTEMPTS} attempts."
        )

    def has_shadow_utils(self, handle: ContainerHandle, run_cmd: Callable) -> bool:
        result = self._exec_root(handle, ["sh", "-c", "command -v useradd"], run_cmd, check=False)
        return result.returncode == 0

    def detect_shell(self, handle: ContainerHandle, run_cmd: Callable) -> str:
        result = self._exec_root(
            handle, ["sh", "-c", "command -v bash || command -v sh"], run_cmd, check=False
        )
        lines = (result.stdout or "").strip().splitlines()
        return lines[0] if result.returncode == 0 and lines else self.FALLBACK_SHELL

    def login_shell(self, handle: ContainerHandle, uid: int, run_cmd: Callable) -> str:
        entry = self.lookup(handle, "passwd", str(uid), run_cmd)
        if entry and len(entry) > 6 and entry[6]:
            return entry[6]
        return self.detect_shell(handle, run_cmd)

    def ensure_group(
        self,
        handle: ContainerHandle,
        host: HostIdentity,
        shadow: bool,
        run_cmd: Callable,
    ) -> str:
        entry = self.lookup(handle, "group", str(host.gid), run_cmd)
        if entry:
            self.logger.debug("Reusing group %s (%s)", entry[0], host.gid)
            return entry[0]

        name = self.free_name(handle, "group", host.group_name, run_cmd)
        if shadow:
            argv = ["groupadd", "--gid", str(host.gid), name]
        else:
            argv = ["addgroup", "-g", str(host.gid), name]
        self._exec_root(handle, argv, run_cmd)
        self.logger.info("Created group %s (%s)", name, host.gid)
        return name

    def ensure_user(
        self,
        handle: ContainerHandle,
        host: HostIdentity,
        group_name: str,
        shadow: bool,
        run_cmd: Callable,
    ) -> MappedIdentity:
        entry = self.lookup(handle, "passwd", str(host.uid), run_cmd)
        if entry and len(entry) > 6:
            self.logger.debug("Reusing user %s (%s)", entry[0], host.uid)
            return MappedIdentity(
                uid=host.uid,
                gid=host.gid,
                user_name=entry[0],
                group_name=group_name,
                home=entry[5] or posixpath.join("/home", entry[0]),
                shell=entry[6] or self.detect_shell(handle, run_cmd),
            )

        name = self.free_name(handle, "passwd", host.user_name, run_cmd)
        home = posixpath.join("/home", name)
        shell = self.detect_shell(handle, run_cmd)
        if shadow:
            argv = [
                "useradd",
                "--uid",
                str(host.uid),
                "--gid",
                str(host.gid),
                "--no-create-home",
                "--home-dir",
                home,
                "--shell",
                shell,
                name,
            ]
        else:
            argv = [
                "adduser",
                "-D",
                "-H",
                "-u",
                str(host.uid),
                "-G",
                group_name,
                "-h",
                home,
                "-s",
                shell,
                name,
            ]
        self._exec_root(handle, argv, run_cmd)
        self.logger.info("Created user %s (%s)", name, host.uid)
        return MappedIdentity(
            uid=host.uid,
            gid=host.gid,
            user_name=name,
            group_name=group_name,
            home=home,
            shell=shell,
        )

    def grant_sudo(self, handle: ContainerHandle, user_name: str, run_cmd: Callable):
        sudoers_file = f"/etc/sudoers.d/dev-env-{user_name}"
        script = (
            'mkdir -p /etc/sudoers.d && printf "%s ALL=(ALL) NOPASSWD:ALL\\n" "$1" > "$2" '
            f'&& chmod {SUDOERS_MODE} "$2"'
        )
        self._exec_root(handle, ["sh", "-c", script, "sh", user_name, sudoers_file], run_cmd)

    def ensure_home(self, handle: ContainerHandle, identity: MappedIdentity, run_cmd: Callable):
        self._exec_root(handle, ["mkdir", "-p", identity.home], run_cmd)
        self._exec_root(handle, ["chown", f"{identity.uid}:{identity.gid}", identity.home], run_cmd)

    def map_identity(
        self, handle: ContainerHandle, host: HostIdentity, run_cmd: Callable
    ) -> MappedIdentity:
        self.console.print(f"[blue]Mapping user {host.user_name} ({host.uid}:{host.gid})...[/blue]")
        shadow = self.has_shadow_utils(handle, run_cmd)
        group_name = self.ensure_group(handle, host, shadow, run_cmd)
        identity = self.ensure_user(handle, host, group_name, shadow, run_cmd)
        self.grant_sudo(handle, identity.user_name, run_cmd)
        self.ensure_home(handle, identity, run_cmd)
        return identity
