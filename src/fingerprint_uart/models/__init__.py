"""Data models for sensor state."""

from .parameters import SensorParameters
