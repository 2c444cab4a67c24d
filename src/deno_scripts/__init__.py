"""Declarative script runner with per-script env, permissions and watch mode."""

__version__ = "0.1.0"
