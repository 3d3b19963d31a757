from referral_api.models.user import Account
from referral_api.models.auth_token import AuthToken, TokenKind
from referral_api.models.session import Session

__all__ = ["Account", "AuthToken", "TokenKind", "Session"]
