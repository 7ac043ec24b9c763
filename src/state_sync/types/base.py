"""Strict pydantic base models shared by every relayer data type."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model whose aliases are the camelCase form of its field names.

    `block_number` validates from and serializes to `blockNumber`, the naming
    used by Ethereum JSON-RPC payloads. Field names are accepted too, so YAML
    configuration can stay snake_case.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )


class StrictBaseModel(CamelModel):
    """Immutable model that rejects unknown fields and type coercion."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }
