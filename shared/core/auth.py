from fastapi import status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from shared.utils.app_status_code import AppStatusCode
from shared.core.config import settings
from shared.helpers.json_response_helper import error_response
from shared.core.schemas import UserToken
from shared.utils.enums import UserAccountType

security = HTTPBearer()


def verify_token(token: str) -> UserToken:
    """Decode a bearer JWT into the caller's request context."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET,
                             algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return error_response(
            message="Invalid or expired token",
            status_code=str(AppStatusCode.AUTHENTICATION_TOKEN_EXPIRED),
            http_status=status.HTTP_401_UNAUTHORIZED
        )

    user = UserToken(**payload)
    if not user.user_id:
        return error_response(
            message="Invalid token structure",
            status_code=str(AppStatusCode.AUTHENTICATION_TOKEN_INVALID),
            http_status=status.HTTP_401_UNAUTHORIZED
        )
    return user


def validate_current_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
):
    user_data = verify_token(credentials.credentials)

    # every property/billing operation is scoped to an organization
    if not user_data.org_id:
        return error_response(
            message="Organization context is required",
            status_code=str(AppStatusCode.AUTHENTICATION_ORG_MISSING),
            http_status=status.HTTP_403_FORBIDDEN
        )
    return user_data


def allow_admin(current_user: UserToken = Depends(validate_current_token)):
    if current_user.account_type.lower() != UserAccountType.ORGANIZATION:
        return error_response(
            message="Access forbidden: Admins only",
            status_code=str(AppStatusCode.UNAUTHORIZED_ACTION),
            http_status=403
        )

    return current_user
