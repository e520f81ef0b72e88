"""
HTTP transport for Tally envelopes.
"""

from .http import TallyTransport, send, XML_CONTENT_TYPE

__all__ = [
    'TallyTransport',
    'send',
    'XML_CONTENT_TYPE',
]
