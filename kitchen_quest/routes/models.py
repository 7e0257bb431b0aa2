"""Pydantic request models for API endpoints."""

import base64
import binascii

from pydantic import BaseModel, field_validator

from kitchen_quest.models import Ingredient


class PhotoBody(BaseModel):
    """A photo as base64 (a data: URL prefix is accepted and dropped)."""

    image: str
    mime_type: str = "image/jpeg"

    @field_validator("image")
    @classmethod
    def _valid_base64(cls, value: str) -> str:
        if value.startswith("data:") and "," in value:
            value = value.split(",", 1)[1]
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("image must be base64-encoded") from e
        return value

    def photo_bytes(self) -> bytes:
        return base64.b64decode(self.image)


class QuestBoardBody(BaseModel):
    budget_goal: str = "Save money vs. takeout"
    inventory: list[Ingredient] | None = None


class SelectQuestBody(BaseModel):
    quest_id: str


class NarrateBody(BaseModel):
    text: str
    speak_aloud: bool = False
