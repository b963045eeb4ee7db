"""Detect operating systems, libraries and config files in container image contents."""

__version__ = "0.1.0"
__all__ = [
    "analyzer",
    "apkcommand",
    "configfiles",
    "distro",
    "libraries",
    "library",
    "redhat",
    "registry",
]