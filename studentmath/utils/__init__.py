"""
Utility helpers for studentmath.
"""
