"""
CLI package for chairman

This package provides the command-line interface for
running the fan control loop.
"""

from .interface import main

__all__ = ['main']
