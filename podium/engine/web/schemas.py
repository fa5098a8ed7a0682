"""Request bodies for the HTTP surface."""

from typing import Literal

from pydantic import BaseModel, Field


class AcceptRequest(BaseModel):
    user_id: str = Field(..., description="User accepting the challenge")


class StatementRequest(BaseModel):
    user_id: str = Field(..., description="Author of the statement")
    content: str = Field(..., description="Argument text for the current round")


class AppealRequest(BaseModel):
    user_id: str = Field(..., description="Losing party filing the appeal")
    reason: str = Field(..., description="Why the verdict should be reviewed")
    verdict_ids: list[int] = Field(
        default_factory=list, description="Initial verdicts being contested"
    )


class RematchRequest(BaseModel):
    user_id: str
    action: Literal["request", "accept", "decline"] = "request"


class RegistrationRequest(BaseModel):
    user_id: str = Field(..., description="User registering for the tournament")
