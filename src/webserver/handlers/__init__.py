"""
Ready-made handlers.

    StaticFileHandler - serves a single file from disk at an exact path
"""

from .static import StaticFileHandler, load_file

__all__ = ["StaticFileHandler", "load_file"]
