"""
Services layer for querying Tally.
"""

from .tally_client import TallyClient

__all__ = ['TallyClient']
