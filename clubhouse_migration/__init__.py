"""Migrate GitHub issues and Trello cards to Clubhouse and keep the workspace tidy."""

__version__ = "0.1.0"
