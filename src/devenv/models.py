"""Shared domain models for dev-env."""

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple


@dataclass(frozen=True)
class LaunchConfig:
    """Options for one run, resolved once by the CLI."""

    project_root: Path
    distro: Optional[str] = None
    build: bool = True
    folder_name: Optional[str] = None
    image: Optional[str] = None
    keep: bool = False
    map_user: bool = True
    run: bool = True
    tty: bool = True
    command: Tuple[str, ...] = ()

    @property
    def mount_folder(self) -> str:
        return self.folder_name or self.project_root.name


@dataclass(frozen=True)
class UpgradeConfig:
    """Options for one self-upgrade, resolved once by the CLI."""

    launcher_path: Path
    target_version: Optional[str]
    upstream_repo: Optional[str]
    upstream_path: str
    merge_tool: Optional[str] = None


@dataclass(frozen=True)
class DistroTarget:
    name: Optional[str]
    context_dir: Optional[Path]
    image: str


@dataclass(frozen=True)
class ContainerHandle:
    container_id: str
    workdir: str
    keep: bool = False


@dataclass(frozen=True)
class HostIdentity:
    uid: int
    gid: int
    user_name: str
    group_name: str


@dataclass(frozen=True)
class MappedIdentity:
    uid: int
    gid: int
    user_name: str
    group_name: str
    home: str
    shell: str


class MergeShape(enum.Enum):
    # (base, current, upstream), result written through an output flag
    OUTPUT_FLAG = "output-flag"
    # (current, base, upstream), result printed on stdout
    STDOUT = "stdout"


@dataclass(frozen=True)
class MergeTool:
    """How to invoke one external three-way merge tool."""

    name: str
    shape: MergeShape
    build_argv: Callable[[str, str, str, str], List[str]]
    is_conflict: Callable[[int], bool]
