"""folio: schema-validated Markdown document repository."""

__version__ = "0.1.0"
