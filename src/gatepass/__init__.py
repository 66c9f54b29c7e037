"""gatepass: offline-capable QR credential validation for site access terminals."""

from gatepass.engine import Engine, build_engine

__version__ = "0.1.0"

__all__ = ["Engine", "build_engine", "__version__"]
