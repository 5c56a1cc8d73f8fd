"""Local HTTP API exposing the PDFier session, tools and chat."""
