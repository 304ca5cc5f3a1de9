"""
Model backend for Conductor.

The agent loop talks to any object implementing ``ModelBackend``; this
package provides the OpenAI-compatible implementation and its models.
"""
