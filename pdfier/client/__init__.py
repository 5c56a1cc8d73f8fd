"""HTTP clients for the PDFier backend."""
