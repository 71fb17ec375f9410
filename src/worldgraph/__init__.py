"""worldgraph - location graph tooling for a text exploration game."""

__version__ = "0.4.0"
