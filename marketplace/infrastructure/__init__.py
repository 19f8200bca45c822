"""
Infrastructure: database, Redis, locks
"""
