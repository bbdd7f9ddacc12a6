"""Build, sign and deploy patched Android APKs."""

__version__ = "0.1.0"
