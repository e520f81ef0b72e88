"""
Request envelope construction.

The builder is the only component that writes XML tags; callers pass
structured HeaderSpec/BodySpec or RequestSpec values.
"""

from .builder import build_envelope, build_request_envelope, split_request, EXPORT_FORMAT

__all__ = [
    'build_envelope',
    'build_request_envelope',
    'split_request',
    'EXPORT_FORMAT',
]
