"""PDFier client: session management and backend API access."""

__version__ = "0.1.0"
