"""Metadata module for title search and images from TMDB."""

from bannerscout.metadata.tmdb_client import TMDBClient

__all__ = ['TMDBClient']
