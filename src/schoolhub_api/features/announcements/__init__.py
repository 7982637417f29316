"""Announcements: class and role-targeted notices with read receipts."""
