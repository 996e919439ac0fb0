from pydantic import BaseModel


class MeOut(BaseModel):
    api_key_id: str
    user_id: str
    email: str
    role: str
    agency_id: str | None
