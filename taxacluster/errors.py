"""Exceptions raised for clustering configuration."""


class ClusterConfigError(ValueError):
    """Raised for unsupported or inconsistent clustering configuration."""
    pass
