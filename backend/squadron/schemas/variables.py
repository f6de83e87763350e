"""
Environment variable schema shared by environments and resources.
"""
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

SECRET_MASK = "********"


def reject_line_breaks(v: Optional[str]) -> Optional[str]:
    # Values travel as env-file lines
    if v is not None and ("\n" in v or "\r" in v):
        raise ValueError("value must not contain line breaks")
    return v


class EnvVar(BaseModel):
    """A key/value pair injected into a container's environment."""
    key: str = Field(..., min_length=1, max_length=255, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    value: str = Field(default="", max_length=65536)
    is_secret: bool = False

    @field_validator("value")
    @classmethod
    def single_line(cls, v: str) -> str:
        return reject_line_breaks(v)


def mask_variables(variables: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return a copy of stored variables with secret values replaced by a mask."""
    masked = []
    for var in variables or []:
        item = dict(var)
        if item.get("is_secret"):
            item["value"] = SECRET_MASK
        masked.append(item)
    return masked


def dump_variables(variables: Iterable[EnvVar]) -> List[Dict[str, Any]]:
    """Serialize variables for a JSONB column, keeping the last value for repeated keys."""
    by_key: Dict[str, Dict[str, Any]] = {}
    for var in variables:
        by_key[var.key] = var.model_dump()
    return list(by_key.values())
