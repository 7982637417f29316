"""Time-driven maintenance: event completion and announcement retention."""
