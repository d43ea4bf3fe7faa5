"""coursegate - progression and assessment engine for certification courses."""

__version__ = "0.1.0"
