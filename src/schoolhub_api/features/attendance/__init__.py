"""Lesson attendance."""
