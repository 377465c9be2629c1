"""
Pydantic schemas for onboarding endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from adapters.schemas import FieldMapping


class DetectFieldsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    table_id: str | None = Field(default=None, alias="tableId")
    spreadsheet_id: str | None = Field(default=None, alias="spreadsheetId")
    sheet_name: str | None = Field(default=None, alias="sheetName")


class SaveFieldMappingsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field_mappings: FieldMapping = Field(..., alias="fieldMappings")


class SaveSheetsConfigRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    spreadsheet_id: str = Field(..., min_length=1, alias="spreadsheetId")
    sheet_name: str = Field(..., min_length=1, alias="sheetName")
    field_mappings: FieldMapping = Field(..., alias="fieldMappings")
