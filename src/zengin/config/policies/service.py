"""Remote lookup service policy models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class FormFieldNames(BaseModel):
    """Names of the urlencoded form fields expected by the service."""

    institution_key: str = Field(default="gm", min_length=1)
    branch_key: str = Field(default="sm", min_length=1)
    branch_token: str = Field(default="pz", min_length=1)


class MarkupMarkers(BaseModel):
    """Markers the HTML parser relies on to locate result rows."""

    institution_table_class: str = Field(default="j0", min_length=1)
    empty_result_sentinel: str = Field(default="該当するデータはありません", min_length=1)


class RemoteServicePolicy(BaseModel):
    """Endpoints and transport defaults for the zengin lookup service."""

    institution_endpoint: str = Field(default="https://zengin.ajtw.net/ginkou.php")
    branch_endpoint: str = Field(default="https://zengin.ajtw.net/shitenmeisai.php")
    user_agent: str = Field(default="ZenginHarvester/1.0", min_length=3)
    request_timeout_seconds: float = Field(default=20.0, gt=0.0)
    form_fields: FormFieldNames = Field(default_factory=FormFieldNames)
    markup: MarkupMarkers = Field(default_factory=MarkupMarkers)

    @field_validator("institution_endpoint", "branch_endpoint")
    @classmethod
    def _validate_endpoint(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("endpoints must be absolute http(s) URLs")
        return cleaned
