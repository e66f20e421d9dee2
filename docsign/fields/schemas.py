# docsign/fields/schemas.py

"""
Pydantic schemas for Fields module.

Field metadata is a closed tagged union keyed by the field type; every field
kind has its own metadata schema.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel


# === Enums ===

class FieldType(str, Enum):
    """Kinds of fillable placeholders."""
    SIGNATURE = "SIGNATURE"
    INITIALS = "INITIALS"
    NAME = "NAME"
    DATE = "DATE"
    EMAIL = "EMAIL"
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    RADIO = "RADIO"
    CHECKBOX = "CHECKBOX"
    DROPDOWN = "DROPDOWN"


class SignatureKind(str, Enum):
    """How a signature value was produced."""
    TYPED = "TYPED"
    IMAGE = "IMAGE"


class TextAlign(str, Enum):
    """Horizontal alignment of the rendered value."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class CheckboxValidationRule(str, Enum):
    """How many checkbox options must be selected."""
    AT_LEAST = "At least"
    EXACTLY = "Exactly"
    AT_MOST = "At most"


# === Field Metadata ===

def either_case(name: str) -> AliasChoices:
    """Metadata written by the editor uses camelCase keys (`readOnly`, `fontSize`)."""
    return AliasChoices(name, to_camel(name))


class BaseFieldMeta(BaseModel):
    """Metadata shared by every field kind."""
    label: Optional[str] = None
    placeholder: Optional[str] = None
    required: bool = True
    read_only: bool = Field(False, validation_alias=either_case("read_only"))
    font_size: Optional[float] = Field(None, ge=8, le=96, validation_alias=either_case("font_size"))
    text_align: Optional[TextAlign] = Field(None, validation_alias=either_case("text_align"))

    model_config = ConfigDict(extra="ignore")


class FieldOption(BaseModel):
    """One selectable option of a radio, checkbox or dropdown field."""
    id: Optional[int] = None
    value: str
    checked: bool = False


class SignatureFieldMeta(BaseFieldMeta):
    type: Literal["signature"] = "signature"


class InitialsFieldMeta(BaseFieldMeta):
    type: Literal["initials"] = "initials"


class NameFieldMeta(BaseFieldMeta):
    type: Literal["name"] = "name"


class DateFieldMeta(BaseFieldMeta):
    type: Literal["date"] = "date"


class EmailFieldMeta(BaseFieldMeta):
    type: Literal["email"] = "email"


class TextFieldMeta(BaseFieldMeta):
    type: Literal["text"] = "text"
    required: bool = False
    text: Optional[str] = None
    character_limit: Optional[int] = Field(None, ge=1, validation_alias=either_case("character_limit"))


class NumberFieldMeta(BaseFieldMeta):
    type: Literal["number"] = "number"
    required: bool = False
    number_format: Optional[str] = Field(None, validation_alias=either_case("number_format"))
    value: Optional[str] = None
    min_value: Optional[float] = Field(None, validation_alias=either_case("min_value"))
    max_value: Optional[float] = Field(None, validation_alias=either_case("max_value"))


class RadioFieldMeta(BaseFieldMeta):
    type: Literal["radio"] = "radio"
    required: bool = False
    values: List[FieldOption] = []


class CheckboxFieldMeta(BaseFieldMeta):
    type: Literal["checkbox"] = "checkbox"
    required: bool = False
    values: List[FieldOption] = []
    validation_rule: Optional[CheckboxValidationRule] = Field(None, validation_alias=either_case("validation_rule"))
    validation_length: Optional[int] = Field(None, ge=0, validation_alias=either_case("validation_length"))


class DropdownFieldMeta(BaseFieldMeta):
    type: Literal["dropdown"] = "dropdown"
    required: bool = False
    values: List[FieldOption] = []
    default_value: Optional[str] = Field(None, validation_alias=either_case("default_value"))


FieldMeta = Annotated[
    Union[
        SignatureFieldMeta, InitialsFieldMeta, NameFieldMeta, DateFieldMeta,
        EmailFieldMeta, TextFieldMeta, NumberFieldMeta, RadioFieldMeta,
        CheckboxFieldMeta, DropdownFieldMeta,
    ],
    Field(discriminator="type"),
]

_field_meta_adapter = TypeAdapter(FieldMeta)


def parse_field_meta(field_type: FieldType, raw: Optional[Dict[str, Any]]) -> BaseFieldMeta:
    """
    Parse stored metadata into the schema of the given field type.

    The stored ``type`` key is ignored; the field's own type always decides the
    schema. Raises pydantic.ValidationError for malformed metadata.
    """
    data = dict(raw or {})
    data["type"] = FieldType(field_type).value.lower()
    return _field_meta_adapter.validate_python(data)


def safe_parse_field_meta(field_type: FieldType, raw: Optional[Dict[str, Any]]) -> Optional[BaseFieldMeta]:
    """Same as parse_field_meta but returns None for malformed metadata."""
    try:
        return parse_field_meta(field_type, raw)
    except ValidationError:
        return None


# === Request Schemas ===

class SignFieldRequest(BaseModel):
    """Value submitted by a recipient for one field."""
    value: str = Field(..., max_length=5_000_000)
    kind: Optional[SignatureKind] = None


# === Response Schemas ===

class SignatureResponse(BaseModel):
    """Signature captured for a SIGNATURE field."""
    id: int
    signature_image_as_base64: Optional[str] = None
    typed_signature: Optional[str] = None
    created_on: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FieldResponse(BaseModel):
    """Field as seen by its recipient."""
    id: int
    secondary_id: str
    document_id: int
    recipient_id: int
    type: FieldType
    page: int
    position_x: float
    position_y: float
    width: float
    height: float
    inserted: bool
    custom_text: str
    field_meta: Optional[Dict[str, Any]] = None
    signature: Optional[SignatureResponse] = None

    model_config = ConfigDict(from_attributes=True)
