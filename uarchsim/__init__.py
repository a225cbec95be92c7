"""LRU cache model, basic-block vectors, indirect-branch counts and ChampSim-style traces."""

__version__ = "0.1.0"