"""textile-ls: link validation and navigation for Textile documents."""

__version__ = "0.1.0"
