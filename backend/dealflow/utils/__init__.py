"""
Utils package for common utilities and helper functions
"""

from .request_context import RequestIdLogFilter, get_request_id, request_id_var

__all__ = [
    'RequestIdLogFilter',
    'get_request_id',
    'request_id_var'
]
