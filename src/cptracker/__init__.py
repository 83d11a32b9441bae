"""Competitive-programming progress tracker.

Syncs student profiles, submissions and rating history from Codeforces,
and reminds students who stop practicing.
"""

__version__ = "0.1.0"
