"""Daily LeetCode challenge tracking for Discord guilds."""

__version__ = "0.1.0"
