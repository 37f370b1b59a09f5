"""Page layout description."""
import logging
from typing import Any, List, Mapping

from ..errors import ErrorCode, ToolError, error_message
from .base import Tool

logger = logging.getLogger(__name__)

# Salesforce error codes in the failure message, checked in order
LAYOUT_ERRORS = (
    ("INVALID_TYPE", "Invalid object name: {name}", ErrorCode.INVALID_PARAMS),
    ("NOT_FOUND", "Object or layout not found: {name}", ErrorCode.RESOURCE_NOT_FOUND),
    ("INSUFFICIENT_ACCESS", "Insufficient permissions to access layout for {name}",
     ErrorCode.AUTHENTICATION_FAILED),
)


def layout_id_for_log(record_id: str) -> str:
    if not record_id or len(record_id) < 15:
        return record_id
    return f"{record_id[:3]}...{record_id[-3:]}"


def section_fields(section: Mapping[str, Any]) -> List[str]:
    return [
        component["value"]
        for row in section.get("layoutRows") or []
        for item in row.get("layoutItems") or []
        for component in item.get("layoutComponents") or []
        if component.get("type") == "Field" and component.get("value")
    ]


def format_layouts(object_name: str, result: Mapping[str, Any]) -> str:
    output = [f"{object_name} Layout Information", "=" * (len(object_name) + 20), ""]

    layouts = (result or {}).get("layouts") or []
    if not layouts:
        output.append("No layouts available for this object.")
        return "\n".join(output)

    for index, layout in enumerate(layouts):
        if index > 0:
            output.append("")
        output.append(f"Layout: {layout.get('name') or 'Unnamed Layout'}")
        if layout.get("recordTypeName"):
            output.append(f"Record Type: {layout['recordTypeName']}")
        output.append("")

        sections = layout.get("detailLayoutSections") or layout.get("sections") or []
        if not sections:
            output.append("No sections available for this layout.")
            continue

        output.append("Sections:")
        for section in sections:
            output.append(f"- {section.get('label') or 'Unnamed Section'}")
            if section.get("columns"):
                output.append(f"  Columns: {section['columns']}")
            fields = section_fields(section)
            if fields:
                output.append(f"  Fields: {', '.join(fields)}")

    mappings = result.get("recordTypeMappings") or []
    if mappings:
        output.append("")
        output.append("Record Type Mappings:")
        for mapping in mappings:
            output.append(f"- Record Type ID: {layout_id_for_log(mapping.get('recordTypeId') or '')} "
                          f"-> Layout ID: {layout_id_for_log(mapping.get('layoutId') or '')}")

    return "\n".join(output)


class DescribeLayoutTool(Tool):
    name = "describe_layout"
    description = ("Describes page layouts for a Salesforce object including sections, "
                   "fields, and positioning")
    annotations = {"title": "Describe Salesforce Object Layout", "readOnlyHint": True,
                   "destructiveHint": False, "idempotentHint": True}

    def execute(self, params, client):
        object_name = params.get("objectName")
        record_type_id = params.get("recordTypeId")
        if not isinstance(object_name, str) or not object_name.strip():
            raise ToolError("objectName is required and must be a non-empty string",
                            ErrorCode.INVALID_PARAMS, self.name)
        if record_type_id and not isinstance(record_type_id, str):
            raise ToolError("recordTypeId must be a string when provided", ErrorCode.INVALID_PARAMS, self.name)

        logger.info(f"Describing layout for {object_name}")
        sf = self._require_connection(client)

        path = f"sobjects/{object_name}/describe/layouts"
        if record_type_id:
            path += f"/{record_type_id}"

        try:
            result = sf.restful(path)
        except Exception as e:
            message = error_message(e)
            logger.error(f"Failed to describe layout for {object_name}: {message}")
            for marker, template, code in LAYOUT_ERRORS:
                if marker in message:
                    raise ToolError(template.format(name=object_name), code, self.name, cause=e)
            raise ToolError(f"Failed to describe layout: {message}", ErrorCode.INTERNAL_ERROR,
                            self.name, cause=e)

        logger.info(f"Retrieved {len((result or {}).get('layouts') or [])} layouts for {object_name}")
        return format_layouts(object_name, result)
