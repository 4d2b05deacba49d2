"""Modules: nested sub-applications with their own components.

Exports:
    Module -- Base class for user modules
    ModuleRegistry -- Lazily instantiated child modules of an owner
    default_module_class -- Naming convention for bare module ids
"""

from perch.modules.base import BaseModule, Module
from perch.modules.registry import ModuleRegistry, default_module_class, normalize_id

__all__ = [
    "BaseModule",
    "Module",
    "ModuleRegistry",
    "default_module_class",
    "normalize_id",
]
