"""Judge (Codeforces) API access."""

from cptracker.judge.client import (
    JudgeClient,
    JudgeError,
    JudgeFetch,
    MalformedResponse,
    RemoteUnavailable,
    UnknownHandle,
)
from cptracker.judge.models import RatingChange, RemoteProblem, RemoteProfile, RemoteSubmission

__all__ = [
    "JudgeClient",
    "JudgeError",
    "JudgeFetch",
    "MalformedResponse",
    "RemoteUnavailable",
    "UnknownHandle",
    "RatingChange",
    "RemoteProblem",
    "RemoteProfile",
    "RemoteSubmission",
]
