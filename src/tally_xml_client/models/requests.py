"""
Request models for envelope construction.

These Pydantic models describe a request as structured values. Callers never
hand-assemble XML: the envelope builder is the only place tags are written.

- FilterClause: one named predicate ("$Name contains 'Meril'")
- RequestSpec: what the caller wants (kind, target, company, filters)
- DataSpec: a DATA directive naming one object or a built-in collection
- HeaderSpec / BodySpec / CollectionSpec: the envelope layout the builder
  serializes, derived from a RequestSpec by build_request_envelope()
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from tally_xml_client.exceptions import InvalidSpecError
from tally_xml_client.types import FilterOperator, RequestKind, TargetType
from tally_xml_client.validators import (
    validate_field_path,
    validate_formula_name,
    validate_non_empty,
    validate_single_line,
    validate_tag_name,
    validate_unique_names,
    validate_xml_text,
)


def _validate_static_variables(variables: Dict[str, str]) -> Dict[str, str]:
    for name, value in variables.items():
        validate_tag_name(name)
        validate_xml_text(value)
    return variables


class FilterClause(BaseModel):
    """
    A named filter predicate.

    The name is both the formula's NAME attribute and the text of the
    <FILTER> reference, so it must be unique within a request.

    Attributes:
        name: Formula name (e.g. 'SearchFilter')
        field_path: TDL method reference (e.g. '$Name')
        operator: FilterOperator
        literal: Raw search text

    Example:
        >>> clause = FilterClause(
        ...     name='SearchFilter',
        ...     field_path='$Name',
        ...     operator=FilterOperator.CONTAINS,
        ...     literal="O'Brien"
        ... )
    """

    name: str = Field(..., description="Formula name, unique within a request")
    field_path: str = Field(..., description="TDL method reference", examples=["$Name"])
    operator: FilterOperator = Field(default=FilterOperator.CONTAINS)
    literal: str = Field(..., description="Text the predicate compares against")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_formula_name(v)

    @field_validator('field_path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        return validate_field_path(v)

    @field_validator('literal')
    @classmethod
    def validate_literal(cls, v: str) -> str:
        return validate_single_line(v)

    model_config = ConfigDict(frozen=True)


class DataSpec(BaseModel):
    """
    DATA directive sent next to DESC in the envelope BODY.

    Two forms:
    - Object reference: <DATA><TALLYMESSAGE><LEDGER NAME=".."/></TALLYMESSAGE></DATA>,
      used with HEADER/TYPE 'Object' to export one master by name
    - Collection reference: <DATA><COLLECTION NAME="..">..</COLLECTION></DATA>,
      used with HEADER/TYPE 'Data' or 'Collection' for built-in reports

    Example:
        >>> DataSpec(object_tag='LEDGER', object_name='Meril Life Sciences')
        >>> DataSpec(collection_name='DayBook')
    """

    object_tag: Optional[str] = Field(default=None, description="Element name, e.g. 'LEDGER'")
    object_name: Optional[str] = Field(default=None)
    collection_name: Optional[str] = Field(default=None)

    @field_validator('object_tag')
    @classmethod
    def validate_object_tag(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_tag_name(v)

    @field_validator('object_name', 'collection_name')
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_xml_text(validate_non_empty(v))

    @model_validator(mode='after')
    def validate_form(self) -> 'DataSpec':
        has_object = self.object_tag is not None or self.object_name is not None
        if has_object and (self.object_tag is None or self.object_name is None):
            raise InvalidSpecError("An object reference needs both object_tag and object_name")
        if has_object == (self.collection_name is not None):
            raise InvalidSpecError(
                "A DATA directive names either one object or one collection"
            )
        return self

    @property
    def is_object(self) -> bool:
        return self.object_tag is not None

    model_config = ConfigDict(frozen=True)


class RequestSpec(BaseModel):
    """
    Caller-level description of one Tally request.

    Three shapes are supported:
    - Flat collection listing: entity_type is None, no filters. Only the
      static-variables block is sent and Tally resolves target_id as a
      built-in report or collection (e.g. 'List of Companies').
    - Filtered collection query: entity_type is set. A TDL COLLECTION named
      target_id is defined with one TYPE, the native_methods projections,
      and one FILTER per clause.
    - Data directive: data is set. The BODY carries a DATA element naming
      one object (target_type 'Object') or a built-in collection, and
      no TDL block is defined.

    Attributes:
        request_kind: TALLYREQUEST value
        target_type: HEADER/TYPE (e.g. 'Collection')
        target_id: HEADER/ID, also the COLLECTION NAME for TDL queries
        company_context: SVCURRENTCOMPANY value; None uses the active company
        entity_type: Collection TYPE (e.g. 'Ledger', 'Company')
        native_methods: Fields to project (NATIVEMETHOD)
        child_of: Optional CHILDOF restriction (e.g. a ledger group)
        static_variables: Extra STATICVARIABLES (e.g. SVFROMDATE)
        filters: Ordered filter clauses
        data: Optional DATA directive

    Raises:
        ValidationError: If targets are empty, filter names repeat, or
            filters are given without an entity_type, or data is
            combined with a TDL collection
    """

    request_kind: RequestKind = Field(default=RequestKind.EXPORT)
    target_type: str = Field(default=TargetType.COLLECTION.value)
    target_id: str = Field(..., description="Collection or report identifier")
    company_context: Optional[str] = Field(default=None)
    entity_type: Optional[str] = Field(default=None)
    native_methods: List[str] = Field(default_factory=lambda: ["Name"])
    child_of: Optional[str] = Field(default=None)
    static_variables: Dict[str, str] = Field(default_factory=dict)
    filters: List[FilterClause] = Field(default_factory=list)
    data: Optional[DataSpec] = Field(default=None)

    @field_validator('target_type', 'target_id')
    @classmethod
    def validate_targets(cls, v: str) -> str:
        return validate_xml_text(validate_non_empty(v))

    @field_validator('company_context', 'child_of', 'entity_type')
    @classmethod
    def validate_optional_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_xml_text(validate_non_empty(v))

    @field_validator('static_variables')
    @classmethod
    def validate_static_variables(cls, v: Dict[str, str]) -> Dict[str, str]:
        return _validate_static_variables(v)

    @field_validator('filters')
    @classmethod
    def validate_filter_names(cls, v: List[FilterClause]) -> List[FilterClause]:
        validate_unique_names([clause.name for clause in v])
        return v

    @model_validator(mode='after')
    def validate_shape(self) -> 'RequestSpec':
        """Filters only make sense on a TDL collection definition."""
        if self.filters and self.entity_type is None:
            raise InvalidSpecError(
                "Filters require entity_type: a flat listing has no "
                "COLLECTION element to attach FILTER references to"
            )
        if self.entity_type is not None and not self.native_methods:
            raise InvalidSpecError("A collection query needs at least one native method")
        if self.data is not None and self.entity_type is not None:
            raise InvalidSpecError(
                "A request carries either a DATA directive or a TDL collection, not both"
            )
        return self

    model_config = ConfigDict(frozen=True)


class HeaderSpec(BaseModel):
    """Envelope HEADER block."""

    version: str = Field(default="1")
    request_kind: RequestKind = Field(default=RequestKind.EXPORT)
    target_type: str = Field(...)
    target_id: str = Field(...)

    @field_validator('target_type', 'target_id')
    @classmethod
    def validate_targets(cls, v: str) -> str:
        return validate_xml_text(validate_non_empty(v))

    model_config = ConfigDict(frozen=True)


class CollectionSpec(BaseModel):
    """TDL COLLECTION definition inside the TDLMESSAGE block."""

    name: str = Field(...)
    entity_type: str = Field(...)
    native_methods: List[str] = Field(..., min_length=1)
    child_of: Optional[str] = Field(default=None)
    filters: List[str] = Field(default_factory=list, description="Formula names referenced by FILTER")

    @field_validator('name', 'entity_type')
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        return validate_xml_text(validate_non_empty(v))

    @field_validator('native_methods')
    @classmethod
    def validate_methods(cls, v: List[str]) -> List[str]:
        return [validate_xml_text(validate_non_empty(m)) for m in v]

    @field_validator('filters')
    @classmethod
    def validate_filter_refs(cls, v: List[str]) -> List[str]:
        return validate_unique_names(v)

    model_config = ConfigDict(frozen=True)


class BodySpec(BaseModel):
    """
    Envelope BODY block.

    Attributes:
        company_context: SVCURRENTCOMPANY value
        static_variables: Additional STATICVARIABLES, in order
        collection: TDL collection definition; None for a flat listing
        formulas: Named formula definitions (name -> expression), in order
        data: DATA directive sent after DESC
    """

    company_context: Optional[str] = Field(default=None)
    static_variables: Dict[str, str] = Field(default_factory=dict)
    collection: Optional[CollectionSpec] = Field(default=None)
    formulas: Dict[str, str] = Field(default_factory=dict)
    data: Optional[DataSpec] = Field(default=None)

    @field_validator('static_variables')
    @classmethod
    def validate_static_variables(cls, v: Dict[str, str]) -> Dict[str, str]:
        return _validate_static_variables(v)

    @field_validator('formulas')
    @classmethod
    def validate_formulas(cls, v: Dict[str, str]) -> Dict[str, str]:
        for name, expression in v.items():
            validate_formula_name(name)
            validate_xml_text(validate_non_empty(expression))
        return v

    @model_validator(mode='after')
    def validate_data_alone(self) -> 'BodySpec':
        if self.data is not None and self.collection is not None:
            raise InvalidSpecError("DATA directive and TDL collection cannot be combined")
        return self

    model_config = ConfigDict(frozen=True)
