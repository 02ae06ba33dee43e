"""
Household backend package.

This package provides a FastAPI application with database, storage and
realtime abstractions for a family-scoped shopping list, chat, calendar,
medication tracker and document archive.
"""
