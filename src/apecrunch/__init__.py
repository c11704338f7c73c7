"""ApeCrunch: exact-fraction calculator with persistent history."""

__version__ = "0.1.0"
