"""Output contract for the reasoning service.

The same pydantic models serve two purposes: ``response_schema()`` turns them
into the structured-output descriptor sent with every request, and
``validate_reply()`` checks the returned text against them. Keeping both on
one set of models means the instruction and the validation cannot disagree.
"""

from enum import Enum
from typing import Any, Dict, List, Type, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field

from threatforge.models.schemas import Severity, StrideCategory


class ThreatEntry(BaseModel):
    """One threat as returned by the reasoning service."""

    model_config = ConfigDict(populate_by_name=True)

    category: StrideCategory = Field(..., description="STRIDE category.")
    threat: str = Field(..., description="A concise description of the threat.")
    severity: Severity = Field(..., description="The assessed severity of the threat.")
    component: str = Field(
        ..., description="The asset or component affected by this threat."
    )
    mitigation: str = Field(
        ..., description="Recommended actions to mitigate the threat."
    )
    code_snippet: str = Field(
        ...,
        alias="codeSnippet",
        description="An example code snippet for the mitigation.",
    )


class ThreatModelReply(BaseModel):
    """Top-level reply shape: assets plus STRIDE threats."""

    assets: List[str] = Field(
        ...,
        description="A list of key assets identified in the system (at least 3).",
    )
    threats: List[ThreatEntry] = Field(
        ...,
        description="A list of identified threats based on the STRIDE framework.",
    )


def response_schema() -> Dict[str, Any]:
    """Structured-output descriptor for ``ThreatModelReply``."""
    return _object_schema(ThreatModelReply)


def validate_reply(text: str) -> ThreatModelReply:
    """
    Parse reply text against the contract.

    Raises:
        pydantic.ValidationError: If the text is not JSON or any field is
            missing or outside its enumeration
    """
    return ThreatModelReply.model_validate_json(text)


def _object_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    required: List[str] = []

    for name, field in model.model_fields.items():
        key = field.alias or name
        prop = _type_schema(field.annotation)
        if field.description:
            prop["description"] = field.description
        properties[key] = prop
        if field.is_required():
            required.append(key)

    return {"type": "OBJECT", "properties": properties, "required": required}


def _type_schema(annotation: Any) -> Dict[str, Any]:
    if get_origin(annotation) in (list, List):
        (item_type,) = get_args(annotation)
        return {"type": "ARRAY", "items": _type_schema(item_type)}

    if isinstance(annotation, type):
        if issubclass(annotation, BaseModel):
            return _object_schema(annotation)
        if issubclass(annotation, Enum):
            return {"type": "STRING", "enum": [member.value for member in annotation]}
        if issubclass(annotation, str):
            return {"type": "STRING"}

    raise TypeError(f"Unsupported contract field type: {annotation!r}")
