from typing import Optional

from pydantic import BaseModel


class Principal(BaseModel):
    """经过身份网关认证后的调用方"""

    id: str  # 身份提供方中的用户id
    email: Optional[str] = None
    name: Optional[str] = None
