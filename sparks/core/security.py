"""安全工具模块：外部身份提供方签发的 JWT 校验"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from sparks.core.config import get_settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """签发访问令牌，主要用于脚本和测试环境模拟身份提供方

    Args:
        data: 要编码到 token 中的数据
        expires_delta: 过期时间间隔，默认30分钟

    Returns:
        str: JWT access token
    """
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """解码并验证 JWT token

    Args:
        token: JWT token 字符串

    Returns:
        Optional[dict]: 解码后的 payload，验证失败返回 None
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
