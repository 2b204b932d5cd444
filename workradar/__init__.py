"""Workradar account authentication and one-time code service."""
