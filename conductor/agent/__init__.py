"""Agent loop, abort signals and session wiring."""
