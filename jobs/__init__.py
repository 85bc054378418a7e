"""
Background workers: scheduler, dramatiq actors and health server.
"""
