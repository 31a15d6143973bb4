from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class VoteCounts(BaseModel):
    yes: int = 0
    no: int = 0


class VotingStatus(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    threshold: int
    deadline_reached: bool
    consensus_restaurant_id: str | None = None
    winner_restaurant_id: str | None = None
    voting_complete: bool
