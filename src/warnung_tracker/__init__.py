"""Warnung Tracker - report new MoWaS civil-defense warnings."""

__version__ = "0.1.0"
