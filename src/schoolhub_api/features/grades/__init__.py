"""Student grades."""
