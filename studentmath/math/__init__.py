"""
Statistical engines for studentmath.
"""
