from typing import Optional

from pydantic import BaseModel


class Identity(BaseModel):
    """The authenticated principal behind a request."""
    id: str
    email: Optional[str] = None
