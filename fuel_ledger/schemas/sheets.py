from pydantic import BaseModel, Field


class WebhookPayload(BaseModel):
    """Change notification sent by the spreadsheet's Apps Script trigger."""

    spreadsheet_id: str = Field(..., alias="spreadsheetId")
    sheet_name: str | None = Field(None, alias="sheetName")
    range: str | None = None
    timestamp: str | None = None

    model_config = {"populate_by_name": True}
