# docsign/fields/validators.py

"""
Value validation for every field kind.

Each field type has exactly one validator; ``FIELD_VALUE_VALIDATORS`` maps every
FieldType to its validator and ``validate_field_value`` is the single dispatch
point used by the mutation engine.
"""

import base64
import binascii
import json
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from docsign.fields.exceptions import FieldValidationException, ForbiddenFieldActionException
from docsign.fields.schemas import (
    BaseFieldMeta, CheckboxFieldMeta, CheckboxValidationRule, DropdownFieldMeta,
    FieldType, NumberFieldMeta, RadioFieldMeta, SignatureKind, TextFieldMeta,
    parse_field_meta,
)
from docsign.utils.date_formats import (
    DEFAULT_DOCUMENT_DATE_FORMAT, DEFAULT_DOCUMENT_TIME_ZONE,
    format_signing_date, is_supported_date_format,
)

MAX_TEXT_LENGTH = 2000
MAX_TYPED_SIGNATURE_LENGTH = 255

IMAGE_DATA_URI_PATTERN = re.compile(r"^data:image/(png|jpeg|jpg|webp|svg\+xml);base64,(?P<data>[A-Za-z0-9+/=\s]+)$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class SigningContext:
    """Document settings a value is validated against."""
    date_format: str = DEFAULT_DOCUMENT_DATE_FORMAT
    timezone: str = DEFAULT_DOCUMENT_TIME_ZONE
    typed_signature_enabled: bool = True
    upload_signature_enabled: bool = True
    draw_signature_enabled: bool = True
    now: Optional[datetime] = None

    @classmethod
    def from_document_meta(cls, document_meta, now: Optional[datetime] = None) -> "SigningContext":
        """Build the context from a DocumentMeta row; defaults apply when the document has none."""
        if document_meta is None:
            return cls(now=now)
        return cls(
            date_format=document_meta.date_format or DEFAULT_DOCUMENT_DATE_FORMAT,
            timezone=document_meta.timezone or DEFAULT_DOCUMENT_TIME_ZONE,
            typed_signature_enabled=document_meta.typed_signature_enabled,
            upload_signature_enabled=document_meta.upload_signature_enabled,
            draw_signature_enabled=document_meta.draw_signature_enabled,
            now=now,
        )


@dataclass
class FieldValue:
    """Validated value ready to be stored on a field."""
    custom_text: str = ""
    signature_image_as_base64: Optional[str] = None
    typed_signature: Optional[str] = None
    summary: Dict[str, object] = field(default_factory=dict)

    @property
    def has_signature(self) -> bool:
        return self.signature_image_as_base64 is not None or self.typed_signature is not None


FieldValidator = Callable[[str, Optional[SignatureKind], BaseFieldMeta, SigningContext], FieldValue]


def _require_text(value: str, label: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    text = (value or "").strip()
    if not text:
        raise FieldValidationException(f"{label} is required")
    if len(text) > max_length:
        raise FieldValidationException(f"{label} must be at most {max_length} characters")
    return text


def _reject_kind(kind: Optional[SignatureKind], label: str) -> None:
    if kind is not None:
        raise FieldValidationException(f"{label} fields do not accept a signature kind")


def _option_values(meta) -> List[str]:
    return [option.value for option in meta.values]


# === Validators ===

def validate_signature(value: str, kind: Optional[SignatureKind], meta: BaseFieldMeta, ctx: SigningContext) -> FieldValue:
    """Signature is either an image data URI or non-empty typed text."""
    value = (value or "").strip()
    if not value:
        raise FieldValidationException("Signature is required")

    is_image = value.startswith("data:image")
    if kind is not None and (kind == SignatureKind.IMAGE) != is_image:
        raise FieldValidationException(f"Signature value does not match kind {kind.value}")

    if is_image:
        if not (ctx.upload_signature_enabled or ctx.draw_signature_enabled):
            raise ForbiddenFieldActionException("Drawn and uploaded signatures are not allowed for this document")
        match = IMAGE_DATA_URI_PATTERN.match(value)
        if not match:
            raise FieldValidationException("Signature image must be a base64 encoded image data URI")
        try:
            base64.b64decode(match.group("data"), validate=False)
        except (binascii.Error, ValueError) as e:
            raise FieldValidationException("Signature image is not valid base64") from e
        return FieldValue(signature_image_as_base64=value, summary={"kind": SignatureKind.IMAGE.value})

    if not ctx.typed_signature_enabled:
        raise ForbiddenFieldActionException("Typed signatures are not allowed. Please draw your signature.")
    typed = _require_text(value, "Typed signature", MAX_TYPED_SIGNATURE_LENGTH)
    return FieldValue(typed_signature=typed, summary={"kind": SignatureKind.TYPED.value})


def validate_initials(value: str, kind: Optional[SignatureKind], meta: BaseFieldMeta, ctx: SigningContext) -> FieldValue:
    _reject_kind(kind, "Initials")
    text = _require_text(value, "Initials", 32)
    return FieldValue(custom_text=text, summary={"value": text})


def validate_name(value: str, kind: Optional[SignatureKind], meta: BaseFieldMeta, ctx: SigningContext) -> FieldValue:
    _reject_kind(kind, "Name")
    text = _require_text(value, "Name", 255)
    return FieldValue(custom_text=text, summary={"value": text})


def validate_email(value: str, kind: Optional[SignatureKind], meta: BaseFieldMeta, ctx: SigningContext) -> FieldValue:
    _reject_kind(kind, "Email")
    text = _require_text(value, "Email", 255)
    if not EMAIL_PATTERN.match(text):
        raise FieldValidationException("Email address is invalid")
    return FieldValue(custom_text=text, summary={"value": text})


def validate_date(value: str, kind: Optional[SignatureKind], meta: BaseFieldMeta, ctx: SigningContext) -> FieldValue:
    """The submitted value names the date format; the stored text is the signing moment."""
    _reject_kind(kind, "Date")
    date_format = (value or "").strip() or ctx.date_format
    if not is_supported_date_format(date_format):
        raise FieldValidationException(f"Unsupported date format: {date_format}")
    if date_format != ctx.date_format:
        raise FieldValidationException("Date format does not match the document date format")

    text = format_signing_date(date_format, ctx.timezone, ctx.now)
    return FieldValue(custom_text=text, summary={"value": text, "date_format": date_format})


def validate_text(value: str, kind: Optional[SignatureKind], meta: TextFieldMeta, ctx: SigningContext) -> FieldValue:
    _reject_kind(kind, "Text")
    text = _require_text(value, "Text")
    if meta.character_limit is not None and len(text) > meta.character_limit:
        raise FieldValidationException(f"Text must be at most {meta.character_limit} characters")
    return FieldValue(custom_text=text, summary={"value": text})


def validate_number(value: str, kind: Optional[SignatureKind], meta: NumberFieldMeta, ctx: SigningContext) -> FieldValue:
    _reject_kind(kind, "Number")
    text = _require_text(value, "Number", 64)
    try:
        number = float(text.replace(",", ""))
    except ValueError as e:
        raise FieldValidationException("Value is not a number") from e
    if math.isnan(number) or math.isinf(number):
        raise FieldValidationException("Value is not a number")

    if meta.min_value is not None and number < meta.min_value:
        raise FieldValidationException(f"Value must be at least {meta.min_value}")
    if meta.max_value is not None and number > meta.max_value:
        raise FieldValidationException(f"Value must be at most {meta.max_value}")
    return FieldValue(custom_text=text, summary={"value": text})


def validate_radio(value: str, kind: Optional[SignatureKind], meta: RadioFieldMeta, ctx: SigningContext) -> FieldValue:
    _reject_kind(kind, "Radio")
    text = _require_text(value, "Selection")
    if text not in _option_values(meta):
        raise FieldValidationException(f"'{text}' is not one of the available options")
    return FieldValue(custom_text=text, summary={"value": text})


def validate_dropdown(value: str, kind: Optional[SignatureKind], meta: DropdownFieldMeta, ctx: SigningContext) -> FieldValue:
    _reject_kind(kind, "Dropdown")
    text = _require_text(value, "Selection")
    if text not in _option_values(meta):
        raise FieldValidationException(f"'{text}' is not one of the available options")
    return FieldValue(custom_text=text, summary={"value": text})


def validate_checkbox(value: str, kind: Optional[SignatureKind], meta: CheckboxFieldMeta, ctx: SigningContext) -> FieldValue:
    """Value is a JSON list of the selected option values."""
    _reject_kind(kind, "Checkbox")
    try:
        selected = json.loads(value or "")
    except ValueError as e:
        raise FieldValidationException("Checkbox value must be a JSON list of options") from e
    if not isinstance(selected, list) or not all(isinstance(item, str) for item in selected):
        raise FieldValidationException("Checkbox value must be a JSON list of options")
    if not selected:
        raise FieldValidationException("At least one option must be selected")
    if len(set(selected)) != len(selected):
        raise FieldValidationException("Options may only be selected once")

    options = _option_values(meta)
    unknown = [item for item in selected if item not in options]
    if unknown:
        raise FieldValidationException(f"Unknown options: {', '.join(unknown)}")

    if meta.validation_rule is not None and meta.validation_length is not None:
        count, length = len(selected), meta.validation_length
        rule = meta.validation_rule
        if rule == CheckboxValidationRule.AT_LEAST and count < length:
            raise FieldValidationException(f"Select at least {length} options")
        if rule == CheckboxValidationRule.EXACTLY and count != length:
            raise FieldValidationException(f"Select exactly {length} options")
        if rule == CheckboxValidationRule.AT_MOST and count > length:
            raise FieldValidationException(f"Select at most {length} options")

    # Keep option order stable regardless of click order
    ordered = [option for option in options if option in selected]
    return FieldValue(custom_text=json.dumps(ordered), summary={"value": ordered})


FIELD_VALUE_VALIDATORS: Dict[FieldType, FieldValidator] = {
    FieldType.SIGNATURE: validate_signature,
    FieldType.INITIALS: validate_initials,
    FieldType.NAME: validate_name,
    FieldType.DATE: validate_date,
    FieldType.EMAIL: validate_email,
    FieldType.TEXT: validate_text,
    FieldType.NUMBER: validate_number,
    FieldType.RADIO: validate_radio,
    FieldType.CHECKBOX: validate_checkbox,
    FieldType.DROPDOWN: validate_dropdown,
}

_missing_validators = set(FieldType) - set(FIELD_VALUE_VALIDATORS)
if _missing_validators:
    raise RuntimeError(f"No value validator for field types: {sorted(t.value for t in _missing_validators)}")


def validate_field_value(
    field_type: FieldType,
    raw_meta: Optional[dict],
    value: str,
    kind: Optional[SignatureKind],
    ctx: SigningContext,
) -> FieldValue:
    """
    Validate a submitted value for a field.

    Raises:
        FieldValidationException: value or stored metadata is malformed.
        ForbiddenFieldActionException: value kind is disallowed by the document.
    """
    try:
        meta = parse_field_meta(field_type, raw_meta)
    except ValidationError as e:
        raise FieldValidationException("Field metadata is invalid") from e

    return FIELD_VALUE_VALIDATORS[FieldType(field_type)](value, kind, meta, ctx)
