"""
Assessment scoring and test-assembly backend.
"""
