"""Critique merging, review recording, reflection metrics and weight adaptation."""
