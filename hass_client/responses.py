"""Envelopes for the hub messages this client consumes."""

from __future__ import annotations

from .envelope import Envelope, field, optional_field


class ResultMessage(Envelope):
    """Reply to a WebSocket command."""

    id = field("id")
    type = field("type")
    success = field("success")
    error = optional_field("error")


class EntityRegistryEntry(Envelope):
    """One row of the entity registry."""

    entity_id = field("entity_id")
    platform = field("platform")
    device_id = optional_field("device_id")
    area_id = optional_field("area_id")
    name = optional_field("name")
    original_name = optional_field("original_name")
    disabled_by = optional_field("disabled_by")

    @property
    def display_name(self) -> str:
        return self.name or self.original_name or self.entity_id


class EntityRegistryList(ResultMessage):
    """Reply to ``config/entity_registry/list``."""

    entries = field("result", wrap=EntityRegistryEntry)


class EntityState(Envelope):
    """Element of the REST ``/api/states`` listing."""

    entity_id = field("entity_id")
    state = field("state")
    device_class = optional_field("attributes", "device_class")
    friendly_name = optional_field("attributes", "friendly_name")
