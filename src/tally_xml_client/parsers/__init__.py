"""
Response parsing: record extraction and protocol status checks.
"""

from .extractor import ResponseExtractor, TextScanExtractor, extract_records
from .status import check_response, find_line_error, find_status

__all__ = [
    'ResponseExtractor',
    'TextScanExtractor',
    'extract_records',
    'check_response',
    'find_line_error',
    'find_status',
]
