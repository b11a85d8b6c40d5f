"""Pydantic request bodies for API endpoints."""

from pydantic import BaseModel, Field

from azure_dao.models import Action, Location


class ActionBody(BaseModel):
    action: Action


class LocationBody(BaseModel):
    location: Location


class DungeonChoiceBody(BaseModel):
    index: int = Field(ge=0, le=3)
