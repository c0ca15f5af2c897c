"""认证依赖模块"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sparks.core.config import get_settings
from sparks.core.security import decode_token
from sparks.domain.models.principal import Principal

# HTTP Bearer 认证方案
security = HTTPBearer(auto_error=False)


def resolve_principal_from_access_token(token: str) -> Principal:
    """解析 access token 并校验邮箱白名单"""
    payload = decode_token(token)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的访问令牌",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type", "access") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的令牌类型",
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal_id = payload.get("sub")
    if not principal_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的令牌",
            headers={"WWW-Authenticate": "Bearer"},
        )

    email = payload.get("email")
    allowed_emails = get_settings().allowed_email_list
    if allowed_emails and (email or "").lower() not in allowed_emails:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="该账户无权访问文件服务",
        )

    return Principal(id=str(principal_id), email=email, name=payload.get("name"))


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Principal:
    """获取当前调用方

    从 Authorization 头中提取 Bearer token，解析并验证

    Raises:
        HTTPException: 401 未授权 / 403 不在白名单
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="未提供认证信息",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return resolve_principal_from_access_token(credentials.credentials)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
