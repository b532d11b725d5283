"""Conversation messages and session storage."""
