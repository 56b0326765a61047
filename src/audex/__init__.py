"""audex - extract audio slices from online videos."""

__version__ = "0.1.0"
