"""Validated request payloads for the import operations."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from finport.config import DEFAULT_MAX_UPLOAD_BYTES
from finport.models import ColumnMapping

CSV_MIME_TYPES = frozenset({"text/csv", "application/vnd.ms-excel", "application/csv"})


class UploadMeta(BaseModel):
    """Metadata of an uploaded file, checked before the file is parsed.

    The size limit can be overridden through the validation context:
    ``UploadMeta.model_validate(meta, context={"max_size": n})``.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    filename: str = Field(min_length=1)
    mime: str
    size: int = Field(ge=0)

    @field_validator("filename")
    @classmethod
    def _csv_suffix(cls, v: str) -> str:
        if not v.lower().endswith(".csv"):
            raise ValueError("File must end with .csv")
        return v

    @field_validator("mime")
    @classmethod
    def _csv_mime(cls, v: str) -> str:
        if v not in CSV_MIME_TYPES:
            raise ValueError("Not a CSV")
        return v

    @field_validator("size")
    @classmethod
    def _max_size(cls, v: int, info: ValidationInfo) -> int:
        context: dict[str, Any] = info.context or {}
        limit = int(context.get("max_size", DEFAULT_MAX_UPLOAD_BYTES))
        if v > limit:
            raise ValueError(f"CSV must be <= {limit} bytes")
        return v


class MappingSchema(BaseModel):
    """A column mapping as submitted by a client (camelCase bank key)."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    bank_key: str = Field(alias="bankKey", min_length=1)
    date: str = Field(min_length=1)
    amount: str = Field(min_length=1)
    type: str = Field(min_length=1)
    description: str = Field(min_length=1)
    merchant: str = Field(min_length=1)
    description_cleaner: str | None = Field(default=None, alias="descriptionCleaner")

    def to_mapping(self) -> ColumnMapping:
        """Convert to the internal ColumnMapping."""
        return ColumnMapping(
            bank_key=self.bank_key,
            date=self.date,
            amount=self.amount,
            type=self.type,
            description=self.description,
            merchant=self.merchant,
            description_cleaner=self.description_cleaner,
        )


class ImportForm(BaseModel):
    """The import request: target account plus column mapping."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    account_name: str = Field(alias="accountName", min_length=1)
    mapping: MappingSchema
