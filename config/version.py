"""
GeoCanvas - Central version management
======================================

Import: from config.version import VERSION, VERSION_STRING, APP_NAME
"""

# Semantic Versioning: MAJOR.MINOR.PATCH
VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

# Release type: "alpha", "beta", "rc1", "" for a stable release
VERSION_SUFFIX = "alpha"

APP_NAME = "GeoCanvas"

VERSION = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"
VERSION_STRING = f"{VERSION}-{VERSION_SUFFIX}" if VERSION_SUFFIX else VERSION
VERSION_FULL = f"v{VERSION_STRING}"


def get_version_info() -> dict:
    """
    Returns all version information as a dictionary.
    Useful for debug output and crash reports.
    """
    return {
        "app_name": APP_NAME,
        "version": VERSION,
        "version_string": VERSION_STRING,
        "version_full": VERSION_FULL,
        "major": VERSION_MAJOR,
        "minor": VERSION_MINOR,
        "patch": VERSION_PATCH,
        "suffix": VERSION_SUFFIX,
    }
