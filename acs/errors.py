from __future__ import annotations


class AcsError(Exception):
    """Base class for supervisor errors."""


class ConfigError(AcsError):
    """Apps root missing or unusable. Fatal to the whole supervisor."""


class ProbeError(AcsError):
    """The container runtime could not be queried."""

    def __init__(self, app_name: str, message: str):
        super().__init__(message)
        self.app_name = app_name


class LaunchError(AcsError):
    """The runtime rejected a create/start operation."""

    def __init__(self, app_name: str, message: str):
        super().__init__(message)
        self.app_name = app_name
