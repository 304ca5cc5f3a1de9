"""Builtin tools."""
