"""Restart Deployments and DaemonSets when the ConfigMaps or Secrets they depend on change."""

__version__ = "0.0.1"