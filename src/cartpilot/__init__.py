"""CartPilot - restock monitoring and checkout automation."""

__version__ = "0.1.0"
