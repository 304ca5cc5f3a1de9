"""
Configuration for Conductor.

Settings documents are JSON: one user-level file and one project-level
file, merged into a ``Configuration`` per session.
"""
