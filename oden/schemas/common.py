from pydantic import BaseModel


class ErrorBody(BaseModel):
    kind: str
    message: str


class ErrorOut(BaseModel):
    ok: bool = False
    error: ErrorBody
