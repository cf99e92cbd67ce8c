"""Dishes, their images and their ratings."""

from .blobs import BlobStore
from .ratings import list_dishes_with_ratings, submit_rating

__all__ = ["BlobStore", "list_dishes_with_ratings", "submit_rating"]
