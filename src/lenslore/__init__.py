"""LensLore - photograph a landmark, get its name, story and sources."""

__version__ = "0.1.0"

from lenslore.config import Config, load_config

__all__ = ["Config", "load_config", "__version__"]
