"""Terminal front-end: renderer and confirmation consumer."""
