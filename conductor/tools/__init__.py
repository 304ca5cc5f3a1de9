"""Tool contract, invoker and the closed builtin tool table."""
