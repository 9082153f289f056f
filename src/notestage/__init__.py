"""Notestage - content routing and markdown rendering for static notes sites."""
