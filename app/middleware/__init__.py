"""Middleware package"""
from .request_id import REQUEST_ID_HEADER, RequestIdFilter, current_request_id, init_request_ids

__all__ = [
    'REQUEST_ID_HEADER',
    'RequestIdFilter',
    'current_request_id',
    'init_request_ids',
]
