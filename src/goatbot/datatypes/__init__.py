"""Data structures shared across the feed engine."""
