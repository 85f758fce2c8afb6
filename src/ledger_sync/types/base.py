"""Reusable, strict base models for protocol payloads."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that converts field names to camel case when serializing.

    For example, the field name `block_no` in a Python model will be
    represented as `blockNo` when it is serialized to JSON, which is the
    spelling the remote node uses on the wire.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )

    def copy(self: Self, **kwargs: Any) -> Self:
        """Create a copy of the model with the updated fields that are validated."""
        return self.__class__(**(self.model_dump(exclude_unset=True) | kwargs))


class StrictBaseModel(CamelModel):
    """A strict, immutable pydantic base model."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }


class LenientBaseModel(CamelModel):
    """
    An immutable model that tolerates unknown fields.

    Used for payloads decoded from the remote, whose schema it may extend
    between releases: chain positions, instructions and health reports.
    """

    model_config = CamelModel.model_config | {
        "extra": "ignore",
        "frozen": True,
    }
