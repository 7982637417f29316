"""Shared helpers used across the SchoolHub API."""
