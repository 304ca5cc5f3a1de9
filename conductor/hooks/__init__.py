"""
Hook system for Conductor.

Hooks are shell commands configured per lifecycle event. The runner executes
one command in an isolated process; the dispatcher selects commands for an
event and applies their exit-code semantics to the conversation.
"""
