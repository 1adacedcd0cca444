"""
squirt: a small embedded graph database for personal posts.

Posts live as RDF quads in an in-memory store, persist through a
key-value cache and synchronize with SPARQL 1.1 endpoints.
"""

from squirt.app import SquirtApp, build_app
from squirt.config import Settings

__version__ = "0.1.0"

__all__ = ["Settings", "SquirtApp", "build_app", "__version__"]
