"""Output sinks for execution results."""
