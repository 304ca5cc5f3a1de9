"""
Permission gating for restricted tools.

This package decides whether a mutating tool call may run and owns the
serial queue of pending human confirmations.
"""
