"""
dev-env - containerized development environment launcher
"""

__version__ = "0.1.0"

from .core import DevEnv
from .errors import DevEnvError
from .upgrade import SelfUpgrader

__all__ = ["DevEnv", "DevEnvError", "SelfUpgrader"]
