"""docent — retrieval-augmented knowledge base for grounded chat agents."""

__version__ = "0.1.0"
