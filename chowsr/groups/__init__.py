"""
Group, invite and membership handling.

Responsibilities:
- Normalize email and phone contacts so invites can be matched on join.
- Define the JSON shapes the HTTP API accepts and returns.
"""
