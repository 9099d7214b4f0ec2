"""Inbound webhook schemas"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AsanaResource(BaseModel):
    gid: str
    resource_type: Optional[str] = None
    name: Optional[str] = None

    class Config:
        extra = "allow"


class AsanaEvent(BaseModel):
    """
    One entry of an Asana webhook delivery.
    Only fields used by this app are declared.
    """

    action: Optional[str] = None
    resource: Optional[AsanaResource] = None
    parent: Optional[AsanaResource] = None

    class Config:
        extra = "allow"

    @property
    def is_task_added_to_project(self) -> bool:
        return bool(
            self.action == "added"
            and self.resource
            and self.resource.resource_type == "task"
            and self.parent
            and self.parent.resource_type == "project"
        )


class AsanaWebhookBody(BaseModel):
    events: list[AsanaEvent] = []

    class Config:
        extra = "allow"
