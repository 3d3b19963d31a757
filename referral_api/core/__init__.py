from referral_api.core.config import settings
from referral_api.core.database import get_db, Base, get_db_session
from referral_api.core.security import (
    verify_password,
    get_password_hash,
    generate_token,
    generate_session_id,
)
