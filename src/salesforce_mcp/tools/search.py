"""Text search and single record retrieval."""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ..errors import error_message
from ..query_validator import contains_dangerous_patterns, detect_sosl_injection
from ..sanitizer import record_type, sanitize_records
from .base import Tool

logger = logging.getLogger(__name__)

MAX_SEARCH_OBJECTS = 10
DEFAULT_SEARCH_OBJECTS = ("Account", "Contact")

RESTRICTED_OBJECTS = (
    "User", "Profile", "PermissionSet", "PermissionSetAssignment",
    "UserRole", "UserRecordAccess", "LoginHistory", "AuthSession",
    "SetupEntityAccess", "ObjectPermissions", "FieldPermissions",
    "SystemModstamp", "OrgWideEmailAddress", "CronTrigger",
    "AsyncApexJob", "ApexLog", "ApexTestResult",
)
RESTRICTED_OBJECT_WORDS = ("permission", "security", "auth")

SENSITIVE_FIELD_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"ssn", r"social", r"tax", r"ein",
    r"credit", r"card", r"bank", r"account.*number",
    r"password", r"token", r"key", r"secret",
    r"salary", r"wage", r"income", r"compensation",
    r"medical", r"health", r"diagnosis", r"prescription",
    r"birth.*date", r"dob", r"license", r"passport",
)]

RECORD_ID = re.compile(r"^[a-zA-Z0-9]{15}$|^[a-zA-Z0-9]{18}$")
LOGGED_ID = re.compile(r"\b\d{15,18}\b")


def search_term_for_log(search_term: str) -> str:
    if len(search_term) > 50:
        return search_term[:47] + "..."
    return LOGGED_ID.sub("[ID_REDACTED]", search_term)


def id_for_log(record_id: Optional[str]) -> str:
    """Keep the first and last three characters of an ID."""
    if record_id and len(record_id) >= 6:
        return f"{record_id[:3]}...{record_id[-3:]}"
    return "[ID_REDACTED]"


def restricted_objects(objects: List[str]) -> List[str]:
    return [
        name for name in objects
        if name in RESTRICTED_OBJECTS or any(word in name.lower() for word in RESTRICTED_OBJECT_WORDS)
    ]


def sensitive_fields(fields: List[str]) -> List[str]:
    return [name for name in fields if any(p.search(name) for p in SENSITIVE_FIELD_PATTERNS)]


def build_sosl_query(search_term: str, objects: List[str], limit: int) -> str:
    escaped = re.sub(r"([{}])", r"\\\1", search_term)
    returning = ", ".join(f"{name}(Id LIMIT {limit})" for name in objects or DEFAULT_SEARCH_OBJECTS)
    return f"FIND {{{escaped}}} IN ALL FIELDS RETURNING {returning}"


def _plural(count: int) -> str:
    return "record" if count == 1 else "records"


def _full_name(record: Mapping[str, Any]) -> str:
    return " ".join(part for part in (record.get("FirstName"), record.get("LastName")) if part)


def _add(details: List[str], label: str, value: Any) -> None:
    if value:
        details.append(f"{label}: {value}")


def format_record_summary(record: Mapping[str, Any], object_type: str) -> str:
    details: List[str] = []
    _add(details, "Id", record.get("Id"))

    if object_type == "Account":
        for key in ("Name", "Type", "Phone", "Email", "Revenue"):
            _add(details, key, record.get(key))
        _add(details, "SSN", record.get("SSN__c"))
        _add(details, "CreditCard", record.get("CreditCard__c"))
    elif object_type == "Contact":
        _add(details, "Name", _full_name(record))
        for key in ("Title", "Phone", "Email"):
            _add(details, key, record.get(key))
        _add(details, "SSN", record.get("SSN__c"))
        _add(details, "BirthDate", record.get("BirthDate"))
    elif object_type == "Lead":
        _add(details, "Name", _full_name(record))
        for key in ("Company", "Phone", "Email"):
            _add(details, key, record.get(key))
    else:
        _add(details, "Name", record.get("Name"))
        for key, value in record.items():
            if key not in ("Id", "Name", "attributes"):
                _add(details, key, value)

    return ", ".join(details)


def format_search_results(records: List[Mapping[str, Any]], search_term: str) -> str:
    if not records:
        return f'No records found matching search term "{search_term}".'

    grouped: Dict[str, List[Mapping[str, Any]]] = {}
    for record in records:
        grouped.setdefault(record_type(record) or "Unknown", []).append(record)

    output = (f"Search completed successfully.\n\n"
              f'Found {len(records)} {_plural(len(records))} matching "{search_term}"\n\n')
    for object_type, group in grouped.items():
        output += f"{object_type} ({len(group)} {_plural(len(group))}):\n"
        for index, record in enumerate(group, 1):
            clean = {k: v for k, v in record.items() if k != "attributes"}
            output += f"  {index}. {format_record_summary(clean, object_type)}\n"
        output += "\n"
    return output


def search_records(result: Any) -> List[Mapping[str, Any]]:
    """Records of a search response, which older APIs return as a bare list."""
    if isinstance(result, list):
        return result
    return (result or {}).get("searchRecords") or []


class SoslSearchTool(Tool):
    name = "sosl_search"
    description = "Execute multi-object text search using SOSL with result ranking and pagination"
    annotations = {"title": "SOSL Text Search", "readOnlyHint": True, "idempotentHint": True}

    def execute(self, params, client):
        search_term = params.get("searchTerm") or ""
        objects = params.get("objects") or []
        limit = params.get("limit") or 20
        fields = params.get("fields") or []

        if not search_term.strip():
            return "Error: Search term cannot be empty"
        if len(search_term.strip()) < 2:
            return "Error: Search term must be at least 2 characters long"
        if contains_dangerous_patterns(search_term) or detect_sosl_injection(search_term):
            return "Error: Search term contains potentially unsafe content"

        if len(objects) > MAX_SEARCH_OBJECTS:
            return f"Error: Cannot search too many objects at once (maximum: {MAX_SEARCH_OBJECTS})"
        forbidden = restricted_objects(objects)
        if forbidden:
            return f"Error: Cannot access to restricted objects: {', '.join(forbidden)}"
        sensitive = sensitive_fields(fields)
        if sensitive:
            return f"Error: Cannot access to sensitive fields: {', '.join(sensitive)}"

        sf = self._connection_or_none(client)
        if sf is None:
            return "Error: No Salesforce connection available. Please authenticate first."

        try:
            logger.info(f"Executing SOSL search for '{search_term_for_log(search_term)}' "
                        f"in {', '.join(objects) if objects else 'all'} (limit {limit})")
            records = search_records(sf.search(build_sosl_query(search_term, objects, limit)))
            sanitized = sanitize_records(records, sf)
            logger.info(f"SOSL search returned {len(records)} records")
            return format_search_results(sanitized, search_term)
        except Exception as e:
            message = error_message(e)
            logger.error(f"Failed to execute SOSL search for '{search_term_for_log(search_term)}': {message}")
            if "INVALID_SEARCH" in message or "Invalid search syntax" in message:
                return f"Invalid search syntax detected. Check your search term format. {message}"
            if "INVALID_TYPE" in message or "is not supported" in message or "timeout" in message.lower():
                return f"Search failed: {message}"
            return f"Error executing search: {message}"


def format_field_value(value: Any) -> str:
    if value is None:
        return "[null]"
    if isinstance(value, str) and "T" in value and value.endswith("Z"):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M:%S UTC")
        except ValueError:
            return value
    return str(value)


def format_record(record: Optional[Mapping[str, Any]], object_name: str, record_id: str) -> str:
    if not record:
        return f"Record {record_id} not found in {object_name}."

    output = (f"Record retrieved successfully from {object_name}:\n\n"
              f"Record ID: {record_id}\n"
              f"Object Type: {object_name}\n\n"
              f"Field Values:\n")
    for key, value in record.items():
        if key == "attributes" or value is None:
            continue
        if isinstance(value, dict) and "attributes" in value:
            related_type = (value.get("attributes") or {}).get("type")
            output += f"  {key} ({related_type}):\n"
            for related_key, related_value in value.items():
                if related_key != "attributes":
                    output += f"    {related_key}: {format_field_value(related_value)}\n"
        else:
            output += f"  {key}: {format_field_value(value)}\n"
    return output


class GetRecordTool(Tool):
    name = "get_record"
    description = ("Retrieve a specific record by ID with optional field selection and "
                   "relationship traversal")
    annotations = {"title": "Get Salesforce Record", "readOnlyHint": True, "idempotentHint": True}

    def execute(self, params, client):
        object_name = params.get("objectName")
        record_id = params.get("recordId")
        fields = params.get("fields")

        if not isinstance(record_id, str) or not RECORD_ID.match(record_id):
            logger.warning(f"Invalid Salesforce ID format provided: {id_for_log(record_id)}")
            return ("Error: Invalid Salesforce ID format. Salesforce IDs must be 15 or 18 characters "
                    "long and contain only alphanumeric characters.")

        sf = self._connection_or_none(client)
        if sf is None:
            return "Error: No Salesforce connection available. Please authenticate first."

        try:
            logger.info(f"Retrieving {object_name} record {id_for_log(record_id)}")
            query_params = {"fields": ",".join(fields)} if fields else None
            record = sf.restful(f"sobjects/{object_name}/{record_id}", params=query_params)
            return format_record(record, object_name, record_id)
        except Exception as e:
            logger.error(f"Failed to retrieve {object_name} record {id_for_log(record_id)}: {str(e)}")
            return f"Error retrieving record: {error_message(e)}"
