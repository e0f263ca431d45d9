"""
SQLAlchemy implementations of the lookup Protocols in
``assessment.core.lookups``.
"""
