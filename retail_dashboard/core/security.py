from __future__ import annotations
from typing import Any, Dict, List, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError
from retail_dashboard.core.config import settings
from retail_dashboard.core.logging import get_logger
from retail_dashboard.domain.users import ViewerContext

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# 1) Claims do token de visualização
# -----------------------------------------------------------------------------
# Os tokens são emitidos pelo serviço de login (fora deste projeto); aqui só
# lemos quem está olhando o dashboard e quais páginas ele pode abrir.

class ViewerClaims(BaseModel):
    sub: Optional[str] = None
    permissions: Optional[List[str]] = None
    pages: Optional[List[str]] = None

    def allowed_pages(self) -> Optional[List[str]]:
        if self.permissions is not None:
            return self.permissions
        return self.pages

# -----------------------------------------------------------------------------
# 2) Decodificação
# -----------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)

def _decode(token: str, secret: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido ou expirado."
        )

def decode_viewer_token(token: str, secret: Optional[str] = None) -> ViewerContext:
    data = _decode(token, secret or settings.JWT_SECRET or "")
    try:
        claims = ViewerClaims(**data)
    except ValidationError:
        raise HTTPException(status_code=401, detail="Token de visualização inválido.")
    pages = claims.allowed_pages()
    if pages is None:
        return ViewerContext(user_id=claims.sub)
    return ViewerContext.with_pages(pages, user_id=claims.sub)

# -----------------------------------------------------------------------------
# 3) Dependência do FastAPI
# -----------------------------------------------------------------------------

def get_viewer(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> ViewerContext:
    """Sem token (ou sem segredo configurado) o visualizador não tem restrições."""
    if creds is None:
        return ViewerContext.unrestricted()
    if not settings.JWT_SECRET:
        logger.debug("Token ignorado: JWT_SECRET não configurado")
        return ViewerContext.unrestricted()
    return decode_viewer_token(creds.credentials)
