"""docchat - chat with your documents using lexical retrieval."""

__version__ = "0.1.0"
