from .loader import load_config
from .models import ProjectConfig, ResumeConfig

__all__ = [
    "ProjectConfig",
    "ResumeConfig",
    "load_config",
]
