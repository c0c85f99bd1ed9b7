from .config import Config, Settings
from .logging_setup import setup_logging

__all__ = ["Config", "Settings", "setup_logging"]
