"""Discord-agnostic services used by the bot."""
