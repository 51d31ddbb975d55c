"""Three-way reconciliation of the launcher through an external merge tool."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Optional

from devenv.errors import ConfigError, MergeConflict, ReconcileError
from devenv.errors_catalog import actionable_error
from devenv.models import MergeShape, MergeTool

DEFAULT_MERGE_TOOL = "diff3"
CONFLICT_SUFFIX = ".conflict"
LABELS = ("-L", "current", "-L", "base", "-L", "upstream")

MERGE_TOOLS: Dict[str, MergeTool] = {
    "diff3": MergeTool(
        name="diff3",
        shape=MergeShape.STDOUT,
        build_argv=lambda base, current, upstream, output: [
            "diff3",
            "-m",
            *LABELS,
            current,
            base,
            upstream,
        ],
        is_conflict=lambda code: code == 1,
    ),
    "merge": MergeTool(
        name="merge",
        shape=MergeShape.STDOUT,
        build_argv=lambda base, current, upstream, output: [
            "merge",
            "-p",
            *LABELS,
            current,
            base,
            upstream,
        ],
        is_conflict=lambda code: code == 1,
    ),
    "git-merge-file": MergeTool(
        name="git-merge-file",
        shape=MergeShape.STDOUT,
        build_argv=lambda base, current, upstream, output: [
            "git",
            "merge-file",
            "-p",
            *LABELS,
            current,
            base,
            upstream,
        ],
        is_conflict=lambda code: 0 < code < 128,
    ),
    "kdiff3": MergeTool(
        name="kdiff3",
        shape=MergeShape.OUTPUT_FLAG,
        build_argv=lambda base, current, upstream, output: [
            "kdiff3",
            "--auto",
            base,
            current,
            upstream,
            "-o",
            output,
        ],
        is_conflict=lambda code: code != 0,
    ),
}


class ThreeWayReconciler:
    """Merges base/current/upstream launcher snapshots and commits the result."""

    def __init__(self, logger, console, filesystem_service, tools: Optional[Dict[str, MergeTool]] = None):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.tools = tools if tools is not None else MERGE_TOOLS

    def configured_tool_name(self, run_cmd: Callable) -> Optional[str]:
        """Return ``git config merge.tool``, or None when unset or git is absent."""
        if shutil.which("git") is None:
            return None

        result = run_cmd(["git", "config", "--get", "merge.tool"], check=False, capture_output=True)
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip() or None

    def select_tool(self, override: Optional[str], run_cmd: Callable) -> MergeTool:
        """Pick the merge tool: explicit setting, then git preference, then diff3.

        Only an explicit setting naming an unknown tool is an error. An unknown
        git preference (vimdiff, meld, ...) falls back to the default tool.
        """
        name = override
        if not name:
            name = self.configured_tool_name(run_cmd)
            if name and name not in self.tools:
                self.logger.warning(
                    "git merge.tool '%s' is not supported here, using %s.", name, DEFAULT_MERGE_TOOL
                )
                name = None
        name = name or DEFAULT_MERGE_TOOL
        tool = self.tools.get(name)
        if tool is None:
            raise ConfigError(
                actionable_error(
                    "unknown_merge_tool",
                    tool=name,
                    supported=", ".join(sorted(self.tools)),
                )
            )
        self.logger.debug("Using merge tool %s (%s)", tool.name, tool.shape.value)
        return tool

    def merge(self, tool: MergeTool, base: str, current: str, upstream: str, run_cmd: Callable):
        """Run ``tool`` over the snapshots and return ``(returncode, merged_text)``."""
        with tempfile.TemporaryDirectory(prefix="dev-env-merge-") as work_dir:
            paths = {}
            for label, content in (("base", base), ("current", current), ("upstream", upstream)):
                paths[label] = os.path.join(work_dir, label)
                with open(paths[label], "w", encoding="utf-8", newline="") as file_obj:
                    file_obj.write(content)
            output_path = os.path.join(work_dir, "merged")

            argv = tool.build_argv(paths["base"], paths["current"], paths["upstream"], output_path)
            if tool.shape is MergeShape.STDOUT:
                result = run_cmd(argv, check=False, capture_output=True)
                return result.returncode, result.stdout or ""

            result = run_cmd(argv, check=False)
            merged = ""
            if os.path.exists(output_path):
                with open(output_path, "r", encoding="utf-8", newline="") as file_obj:
                    merged = file_obj.read()
            return result.returncode, merged

    def reconcile(
        self,
        base: str,
        current: str,
        upstream: str,
        output_path: Path,
        run_cmd: Callable,
        tool_override: Optional[str] = None,
    ) -> str:
        tool = self.select_tool(tool_override, run_cmd)
        self.console.print(f"[blue]Merging upstream changes with {tool.name}...[/blue]")

        returncode, merged = self.merge(tool, base, current, upstream, run_cmd)

        if returncode != 0:
            if not tool.is_conflict(returncode):
                raise ReconcileError(f"Merge tool {tool.name} failed with exit status {returncode}.")

            conflict_path = f"{output_path}{CONFLICT_SUFFIX}"
            if merged:
                self.filesystem_service.atomic_write_text(
                    conflict_path, merged, mode=self.filesystem_service.file_mode(output_path)
                )
            raise MergeConflict(
                actionable_error(
                    "merge_conflict",
                    path=str(output_path),
                    tool=tool.name,
                    returncode=str(returncode),
                    conflict_path=conflict_path,
                ),
                returncode=returncode,
                conflict_path=conflict_path,
            )

        if not merged:
            raise ReconcileError(f"Merge tool {tool.name} produced no output.")

        self.filesystem_service.atomic_write_text(output_path, merged)
        self.filesystem_service.remove_file(f"{output_path}{CONFLICT_SUFFIX}")
        self.logger.info("Merged launcher written to %s", output_path)
        return merged
