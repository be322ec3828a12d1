"""Bastion: command dispatch and GPU telemetry control plane."""

__version__ = "0.1.0"
