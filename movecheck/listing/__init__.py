"""
IR listing front-end: parse the line-per-instruction text form into a Unit.
"""

from .parser import ListingError, ListingSyntaxError, load_listing, parse_listing

__all__ = ["ListingError", "ListingSyntaxError", "load_listing", "parse_listing"]
