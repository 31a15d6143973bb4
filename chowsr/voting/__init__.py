"""
Voting engine.

Responsibilities:
- Aggregate yes/no votes per restaurant.
- Decide whether voting is complete (consensus or deadline) and who won.
- Close a finished group exactly once and send the result exactly once.
"""
