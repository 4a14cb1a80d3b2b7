"""Furlong: DRF past-performance parser and handicapping score engine."""

__version__ = "0.4.0"
