"""
Core infrastructure: database, clock, exceptions, auth and logging.
"""
