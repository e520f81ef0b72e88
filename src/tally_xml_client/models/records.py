"""
Response-side models: what to extract and what comes back.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator, ConfigDict

from tally_xml_client.validators import validate_tag_name


class RecordPattern(BaseModel):
    """
    Describes one repeating record shape in a response.

    Attributes:
        entity_tag: Repeating element, one per record (e.g. 'COMPANY')
        field_tags: Sub-elements captured into the record (e.g. ['NAME'])
        container_tag: Optional bounding element (e.g. 'DATA'); when set,
            only text inside it is scanned
        attribute_fields: Attributes of the entity start tag used as a
            fallback for fields missing as sub-elements. Empty by default,
            which ignores attributes entirely.

    Example:
        >>> pattern = RecordPattern(entity_tag='COMPANY', field_tags=['NAME'])
    """

    entity_tag: str = Field(...)
    field_tags: Tuple[str, ...] = Field(..., min_length=1)
    container_tag: Optional[str] = Field(default=None)
    attribute_fields: Tuple[str, ...] = Field(default=())

    @field_validator('entity_tag')
    @classmethod
    def validate_entity_tag(cls, v: str) -> str:
        return validate_tag_name(v)

    @field_validator('container_tag')
    @classmethod
    def validate_container_tag(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_tag_name(v)

    @field_validator('field_tags', 'attribute_fields')
    @classmethod
    def validate_names(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(validate_tag_name(name) for name in v)

    model_config = ConfigDict(frozen=True)


@dataclass
class ResponseRecord:
    """One extracted record: field name -> trimmed text value."""
    fields: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(name, default)

    def __getitem__(self, name: str) -> str:
        return self.fields[name]

    def __contains__(self, name: str) -> bool:
        return name in self.fields


@dataclass
class LedgerMatch:
    """Ledger returned by a search or listing."""
    name: str
    parent: Optional[str] = None


@dataclass
class DialectAttempt:
    """Outcome of trying one formula dialect during a probe."""
    dialect: str
    succeeded: bool
    record_count: int = 0
    error: Optional[str] = None
    records: List[ResponseRecord] = field(default_factory=list)
