"""Critic review identity resolution and score reconciliation."""
