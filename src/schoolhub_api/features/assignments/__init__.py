"""Class assignments and student submissions."""
