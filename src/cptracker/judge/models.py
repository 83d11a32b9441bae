"""Codeforces API payload models.

Only the fields the tracker needs are declared; anything else in the
payload is ignored.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

ACCEPTED_VERDICT = "OK"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RemoteProfile(_Payload):
    """Entry of user.info."""

    handle: str
    rating: int = 0
    max_rating: int = Field(default=0, alias="maxRating")


class RemoteProblem(_Payload):
    """Problem object embedded in a submission."""

    contest_id: Optional[int] = Field(default=None, alias="contestId")
    index: str
    name: str
    rating: Optional[int] = None
    tags: List[str] = Field(default_factory=list)

    @property
    def key(self) -> str:
        """Natural key used for the problems table.

        Contest id + index identifies a problem uniquely; entries without a
        contest id fall back to index + name.
        """
        if self.contest_id is not None:
            return f"{self.contest_id}-{self.index}"
        return f"{self.index}-{self.name}"


class RemoteSubmission(_Payload):
    """Entry of user.status."""

    id: int
    contest_id: Optional[int] = Field(default=None, alias="contestId")
    creation_time_seconds: int = Field(alias="creationTimeSeconds")
    problem: RemoteProblem
    programming_language: str = Field(default="", alias="programmingLanguage")
    # Absent while the submission is still in the judging queue
    verdict: Optional[str] = None
    time_consumed_millis: int = Field(default=0, alias="timeConsumedMillis")
    memory_consumed_bytes: int = Field(default=0, alias="memoryConsumedBytes")

    @property
    def is_accepted(self) -> bool:
        return self.verdict == ACCEPTED_VERDICT


class RatingChange(_Payload):
    """Entry of user.rating."""

    contest_id: int = Field(alias="contestId")
    contest_name: str = Field(alias="contestName")
    rank: int
    rating_update_time_seconds: int = Field(alias="ratingUpdateTimeSeconds")
    old_rating: int = Field(alias="oldRating")
    new_rating: int = Field(alias="newRating")

    @property
    def rating_change(self) -> int:
        return self.new_rating - self.old_rating
