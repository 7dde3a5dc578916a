"""Discord bot integration for Tierkeeper.

The bot runs in-process with FastAPI, sharing the same event loop. It
keeps staff rank roles in sync with title roles and hosts the promotion
quiz as a slash command with select-menu answers.
"""
