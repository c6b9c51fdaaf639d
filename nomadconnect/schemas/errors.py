from typing import Dict, List, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    detail: str
    field_errors: Optional[Dict[str, List[str]]] = None
