"""Discord integration: the activity bot and its slash commands."""
