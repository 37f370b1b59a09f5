"""PII masking and field-level-security filtering for Salesforce records.

Masks contain no digits, so sanitizing an already sanitized value or record
returns it unchanged.
"""
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from .salesforce import describe_sobject

logger = logging.getLogger(__name__)

SSN_FIELD = re.compile(r"ssn|social", re.IGNORECASE)
CARD_FIELD = re.compile(r"credit.*card", re.IGNORECASE)

SSN = re.compile(r"\d{3}-\d{2}-\d{4}")
SSN_DIGITS = re.compile(r"\d{9}")
CARD = re.compile(r"\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}")
CARD_DIGITS = re.compile(r"\d{13,19}")

SSN_VALUE = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")
SSN_DIGITS_VALUE = re.compile(r"\b\d{9}\b")
CARD_VALUE = re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b")
CARD_DIGITS_VALUE = re.compile(r"\b\d{13,19}\b")

SSN_MASK = "***-**-****"
CARD_MASK = "****-****-****-****"


def mask_sensitive_value(value: str, field_name: str = "") -> str:
    """Mask SSN and card numbers, first by field name and then by value shape."""
    if SSN_FIELD.search(field_name):
        value = SSN.sub(SSN_MASK, value)
        value = SSN_DIGITS.sub("*" * 9, value)
    elif CARD_FIELD.search(field_name):
        value = CARD.sub(CARD_MASK, value)
        value = CARD_DIGITS.sub("*" * 16, value)

    value = SSN_VALUE.sub(SSN_MASK, value)
    value = SSN_DIGITS_VALUE.sub("*" * 9, value)
    value = CARD_VALUE.sub(CARD_MASK, value)
    value = CARD_DIGITS_VALUE.sub(lambda m: "*" * len(m.group(0)), value)
    return value


def field_permissions(describe: Mapping[str, Any]) -> Dict[str, Mapping[str, Any]]:
    return {f["name"]: f for f in describe.get("fields") or [] if f.get("name")}


def sanitize_record(record: Mapping[str, Any],
                    fields: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Dict[str, Any]:
    """Drop inaccessible fields and mask every string value.

    ``attributes`` is kept as-is. Without field metadata nothing is dropped.
    """
    fields = fields or {}
    sanitized = {}
    for name, value in record.items():
        if name == "attributes":
            sanitized[name] = value
            continue
        field_info = fields.get(name)
        if field_info is not None and field_info.get("accessible") is False:
            continue
        sanitized[name] = mask_sensitive_value(value, name) if isinstance(value, str) else value
    return sanitized


def record_type(record: Any) -> Optional[str]:
    attributes = record.get("attributes") if isinstance(record, Mapping) else None
    if isinstance(attributes, Mapping):
        return attributes.get("type")
    return None


def mask_values(record: Any) -> Any:
    """Value masking without field metadata, for records that fail sanitization."""
    if not isinstance(record, Mapping):
        return record
    return {name: mask_sensitive_value(value, name) if isinstance(value, str) else value
            for name, value in record.items()}


def sanitize_records(records: List[Mapping[str, Any]], sf) -> List[Dict[str, Any]]:
    """Sanitize search results, describing each object type at most once.

    A failed describe leaves that object type with value masking only, and a
    record that cannot be sanitized is value masked on its own. The result
    always has one entry per input record, in input order.
    """
    permissions: Dict[str, Dict[str, Mapping[str, Any]]] = {}
    sanitized = []
    for index, record in enumerate(records or []):
        try:
            object_type = record_type(record)
            if object_type and object_type not in permissions:
                try:
                    permissions[object_type] = field_permissions(describe_sobject(sf, object_type))
                except Exception as e:
                    logger.warning(f"Failed to get field permissions for {object_type}, "
                                   f"using basic sanitization: {str(e)}")
                    permissions[object_type] = {}
            sanitized.append(sanitize_record(record, permissions.get(object_type)))
        except Exception as e:
            logger.warning(f"Failed to sanitize record {index}, masking values only: {str(e)}")
            sanitized.append(mask_values(record))
    return sanitized


def sanitize_picklist_values(values: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Mask picklist labels, falling back to the value when a label is missing."""
    return [
        {**value, "label": mask_sensitive_value(value.get("label") or value.get("value") or "")}
        for value in values
    ]
