"""
Core package - configuration, logging and cross-cutting utilities.
"""
