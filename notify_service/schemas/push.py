from pydantic import BaseModel, Field


class TokenValidationRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=4096)


class TokenValidationResponse(BaseModel):
    valid: bool
