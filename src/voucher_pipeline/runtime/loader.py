"""Dynamic loader for session factories named in configuration."""

from __future__ import annotations

import importlib
import logging

from voucher_pipeline.core.adapters import SessionFactory
from voucher_pipeline.core.config.pipeline import AdaptersConfig
from voucher_pipeline.core.errors import AdapterLoadError

logger = logging.getLogger(__name__)

FACTORY_METHODS = ("open_browser", "open_workbook", "open_approval")


def load_factory_class(class_path: str) -> type:
    """Dynamically load a session factory class by its fully-qualified path.

    Args:
        class_path: Dotted path such as ``"my_package.sessions.PlaywrightFactory"``.

    Returns:
        The loaded class (not an instance).

    Raises:
        AdapterLoadError: If the path is malformed, the module cannot be
            imported, the attribute does not exist, or the attribute is not
            a class.
    """
    parts = class_path.rsplit(".", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise AdapterLoadError(
            class_path,
            ValueError(f"Invalid class path format: '{class_path}' (expected 'module.ClassName')"),
        )

    module_path, class_name = parts

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise AdapterLoadError(class_path, exc) from exc

    try:
        cls = getattr(module, class_name)
    except AttributeError as exc:
        raise AdapterLoadError(class_path, exc) from exc

    if not isinstance(cls, type):
        raise AdapterLoadError(class_path, TypeError(f"'{class_name}' is not a class"))

    return cls


def validate_factory_class(class_path: str) -> list[str]:
    """Validate a factory class and return any warnings.

    Returns:
        A list of warning messages.  An empty list means the class looks
        usable.

    Raises:
        AdapterLoadError: If the class cannot be loaded at all.
    """
    cls = load_factory_class(class_path)
    warnings: list[str] = []

    missing = [name for name in FACTORY_METHODS if not callable(getattr(cls, name, None))]
    if missing:
        warnings.append(f"'{class_path}' is missing factory methods: {', '.join(missing)}")

    abstract_methods: frozenset[str] = getattr(cls, "__abstractmethods__", frozenset())
    if abstract_methods:
        warnings.append(f"'{class_path}' has unimplemented abstract methods: {', '.join(sorted(abstract_methods))}")

    return warnings


def instantiate_factory(config: AdaptersConfig) -> SessionFactory:
    """Create the session factory described by *config*.

    Uses ``from_config(config.options)`` if the class provides it,
    otherwise falls back to ``cls(**config.options)``.

    Raises:
        AdapterLoadError: If no factory is configured, or loading or
            instantiation fails.
    """
    if not config.factory:
        raise AdapterLoadError("<unset>", ValueError("adapters.factory is not configured"))

    cls = load_factory_class(config.factory)
    try:
        if hasattr(cls, "from_config") and callable(cls.from_config):
            instance = cls.from_config(dict(config.options))
        else:
            instance = cls(**config.options)
    except Exception as exc:
        raise AdapterLoadError(config.factory, exc) from exc

    if not isinstance(instance, SessionFactory):
        raise AdapterLoadError(config.factory, TypeError("instance does not implement SessionFactory"))

    logger.debug("Loaded session factory %s", config.factory)
    return instance
