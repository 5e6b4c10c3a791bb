"""Built-in controllers."""

from .app import AppController, create_default_factory

__all__ = ["AppController", "create_default_factory"]
