"""SchoolHub API: role-scoped access control and real-time notifications."""

__version__ = "0.1.0"
