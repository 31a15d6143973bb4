"""
chowsr: group restaurant voting service.

Responsibilities:
- Let a host create a voting group for a location and deadline.
- Invite members by email or phone and let them join.
- Pull nearby restaurants from OpenStreetMap for the group to vote on.
- Close voting on consensus or deadline and notify members of the result.
"""
