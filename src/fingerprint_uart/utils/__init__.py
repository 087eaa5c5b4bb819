"""Shared helpers."""

from .checksum import checksum16
