"""Identity records as held by the external record store."""

from __future__ import annotations

from dataclasses import dataclass, field

from apcore import Identity
from pydantic import BaseModel, ConfigDict, Field

from apikey_gate.constants import API_KEY_TAG


class Tag(BaseModel):
    """A ``(name, value)`` pair attached to an identity record."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class IdentityRecord(BaseModel):
    """The store's view of a principal.

    Attributes:
        id: Stable identity reference.
        type: Principal type, copied onto the resolved ``Identity``.
        roles: Roles copied onto the resolved ``Identity``.
        tags: Unordered credential and metadata pairs.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: str = "user"
    roles: tuple[str, ...] = ()
    tags: tuple[Tag, ...] = ()

    def has_tag(self, name: str, value: str) -> bool:
        return any(tag.name == name and tag.value == value for tag in self.tags)

    def to_identity(self) -> Identity:
        """Return the canonical ``Identity``, with the API key tags left out."""
        attrs = {"tags": {tag.name: tag.value for tag in self.tags if tag.name != API_KEY_TAG}}
        return Identity(
            id=self.id,
            type=self.type,
            roles=tuple(self.roles),
            attrs=attrs,
        )


@dataclass(frozen=True)
class RecordFilter:
    """Compound store filter: identity reference AND a matching tag.

    ``tag_value`` is the raw credential and is kept out of ``repr``.
    """

    identity_ref: str
    tag_name: str
    tag_value: str = field(repr=False)

    def matches(self, record: IdentityRecord) -> bool:
        return record.id == self.identity_ref and record.has_tag(self.tag_name, self.tag_value)
