"""Armor plate detection, light-bar geometry, number classification and debug drawing on NumPy images."""

__version__ = "0.1.0"