"""SR-IOV device discovery from sysfs, device selection, info providers, pools and request handling."""

__version__ = "0.1.0"