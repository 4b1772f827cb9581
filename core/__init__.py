"""
Shared infrastructure: settings, logging, errors, storage and collaborators.
"""
