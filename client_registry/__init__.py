"""
Client Registry
Persistence for GraphQL client registrations, persisted queries and
their publish state.
"""

__version__ = "1.0.0"
