"""Mapbox account backup.

Enumerates styles, tilesets, datasets and tokens through the paginated
Mapbox APIs and writes them to a local directory tree.
"""

__version__ = "0.4.0"
