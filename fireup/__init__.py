"""Prepare root filesystems and start Firecracker microVMs from the command line."""

__version__ = "0.4.0"