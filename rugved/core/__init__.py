"""Conversation orchestration: request pipeline, sanitizer and voice control."""
