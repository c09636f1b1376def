"""NoteSage: retrieval-augmented chat over a directory of markdown notes."""

__version__ = "0.1.0"
