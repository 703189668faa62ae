"""Utility modules for the Clubhouse migration."""
