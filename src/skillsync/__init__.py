"""Install agent skills into a managed repository and fan them out as symlinks."""

from skillsync.errors import SkillSyncError
from skillsync.skills.engine import InstallEngine, InstallResult, InstallState

__version__ = "0.1.0"

__all__ = [
    "InstallEngine",
    "InstallResult",
    "InstallState",
    "SkillSyncError",
    "__version__",
]
