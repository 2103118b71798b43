"""Guided interview to article generation backend."""

__version__ = "0.1.0"
