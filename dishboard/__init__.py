"""Dishboard - recipe sharing backend.

Users post dishes (with an optional photo) and rate each other's dishes 1-10.
A single designated admin account manages user accounts through the admin panel.

Core concepts:
- Identity is a signed JWT carrying {id, username, role?}.
- Two guards: any authenticated user, and the admin (shared key or admin token).
- Only a dish's author may edit or delete it.
- One rating per (user, dish); averages are computed on read.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
