"""
Conductor: orchestration core of a terminal coding agent.

A session sends the conversation to a model backend, runs the tool calls it
requests through hooks and a permission gate, and keeps going until the
model stops asking for tools.
"""

__version__ = "0.1.0"
