"""
Report Errors

Exceptions raised by the report pipeline and the JSON:API style error
envelope they are rendered into. Every failure carries a numeric code, the
matching status text and a human readable title; a caller may instead supply
a full list of error objects.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

from typing import Optional, List, Dict, Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

# Headers sent with error responses (content-type is not an allowed header here)
ERROR_CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,PUT,OPTIONS',
    'Access-Control-Allow-Headers': 'authorization, x-api-key',
}

# Headers sent with successful report responses
SUCCESS_CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,PUT,OPTIONS',
    'Access-Control-Allow-Headers': 'authorization, x-api-key, content-type',
}


class ErrorObject(BaseModel):
    """Single entry of the errors list (extra members are passed through)"""
    model_config = ConfigDict(extra="allow")

    status: str = Field(..., description="HTTP status code as a string")
    title: Optional[str] = Field(None, description="Human readable error message")
    detail: Optional[str] = Field(None, description="Optional extra detail")


class ErrorEnvelope(BaseModel):
    """Body returned for every failed report request"""
    errors: List[ErrorObject]


class ReportError(Exception):
    """Base class for failures that end a report request early"""

    code: int = 400
    status_text: str = "Bad Request"

    def __init__(self, title: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(title)
        self.title = title
        self.errors = errors

    def to_envelope(self) -> Dict[str, Any]:
        """Build the response body for this error"""
        if self.errors is None:
            envelope = ErrorEnvelope(errors=[ErrorObject(status=str(self.code), title=self.title)])
        else:
            envelope = ErrorEnvelope(errors=[
                ErrorObject(**{**error, 'status': str(error.get('status', self.code))})
                for error in self.errors
            ])
        return envelope.model_dump(exclude_none=True)


class BadRequest(ReportError):
    """Malformed or incomplete report request (HTTP 400)"""
    code = 400
    status_text = "Bad Request"


class Unauthorized(ReportError):
    """Caller may not see the requested data (HTTP 401)"""
    code = 401
    status_text = "Unauthorized"


def error_response(exc: ReportError) -> JSONResponse:
    """Render a ReportError as a JSON response with CORS headers"""
    return JSONResponse(
        status_code=exc.code,
        content=exc.to_envelope(),
        headers=ERROR_CORS_HEADERS
    )
