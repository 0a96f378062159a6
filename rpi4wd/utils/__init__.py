"""공통 유틸리티 모음."""

from .config_loader import load_config, load_default_config
from .timing import Deadline

__all__ = ["load_config", "load_default_config", "Deadline"]
