"""PrintMatch spreadsheet import toolkit."""

__version__ = "0.1.0"
