"""Shopping query routing, fusion and ranking over a Typesense product index."""

__version__ = "0.1.0"
