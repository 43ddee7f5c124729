"""Conversation history and credential storage."""
