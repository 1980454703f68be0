"""Bootstrap, seed and observe a MongoDB replica set."""

__version__ = "0.1.0"
