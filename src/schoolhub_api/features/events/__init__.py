"""School calendar events."""
