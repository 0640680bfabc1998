"""Labyrinth: host controller and leaderboard for the tilt-maze game."""

__version__ = "0.1.0"
__author__ = "Labyrinth Team"

__all__ = ["__version__", "__author__"]
