"""Dependency container: the lazy component registry."""

from perch.di.locator import Pending, Resolved, ServiceLocator

__all__ = ["Pending", "Resolved", "ServiceLocator"]
