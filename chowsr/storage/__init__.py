"""
Persistence layer.

Responsibilities:
- Define the SQLite schema for groups, invites, members, restaurants and votes.
- Provide request-scoped sessions to the HTTP layer.
- Expose the small set of CRUD operations the API and finalization need.
"""
