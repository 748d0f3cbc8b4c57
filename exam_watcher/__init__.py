"""
Exam Watcher - Telegram announcer for exam notifications and results.

This package provides functionality to:
- Fetch the exam notifications and results pages
- Parse the entries of the most recent publish date
- Compare them with the previous check to detect new entries
- Notify a Telegram channel once per new entry
"""

__version__ = "1.0.0"
__author__ = "Exam Watcher Team"
