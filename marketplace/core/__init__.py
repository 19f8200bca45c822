"""
Core: settings, logging, dependencies
"""
