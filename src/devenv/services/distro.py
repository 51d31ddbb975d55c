"""Distro and image selection for dev-env."""

import re
from pathlib import Path
from typing import List, Optional

from devenv.constants import BUILD_RECIPE, DEV_ENV_DIR, IMAGE_SUFFIX
from devenv.errors import BuildError
from devenv.errors_catalog import actionable_error
from devenv.models import DistroTarget

_INVALID_IMAGE_CHARS = re.compile(r"[^a-z0-9._-]+")


class DistroSelector:
    """Resolves the distro to run and the image tag to build or use."""

    def __init__(self, project_root: Path, logger):
        self.project_root = Path(project_root)
        self.contexts_dir = self.project_root / DEV_ENV_DIR
        self.logger = logger

    def available_distros(self) -> List[str]:
        if not self.contexts_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.contexts_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def select_distro(self, explicit: Optional[str], default: Optional[str]) -> Optional[str]:
        """Apply flag > settings > lexicographically largest directory."""
        if explicit:
            return explicit
        if default:
            self.logger.debug("Using distro '%s' from settings.", default)
            return default

        distros = self.available_distros()
        if not distros:
            return None
        self.logger.debug("Available distros: %s", ", ".join(distros))
        return distros[-1]

    def context_dir(self, distro: str) -> Path:
        return self.contexts_dir / distro

    def ensure_build_context(self, distro: str) -> Path:
        context = self.context_dir(distro)
        recipe = context / BUILD_RECIPE
        if not recipe.is_file():
            raise BuildError(
                actionable_error("missing_build_context", distro=distro, path=str(recipe))
            )
        return context

    def image_tag(self, distro: str, image: Optional[str] = None) -> str:
        if image:
            return image
        raw = f"{self.project_root.name}-{distro}-{IMAGE_SUFFIX}".lower()
        return _INVALID_IMAGE_CHARS.sub("-", raw).strip("-._")

    def select(
        self,
        explicit: Optional[str],
        default: Optional[str],
        image: Optional[str],
        build: bool,
    ) -> DistroTarget:
        distro = self.select_distro(explicit, default)

        if distro is None:
            if image and not build:
                return DistroTarget(name=None, context_dir=None, image=image)
            raise BuildError(actionable_error("no_distros", path=str(self.contexts_dir)))

        context = self.ensure_build_context(distro) if build else self.context_dir(distro)
        return DistroTarget(name=distro, context_dir=context, image=self.image_tag(distro, image))
