from logistics_pro.core.config import settings
from logistics_pro.core.database import Base, Database, get_db
from logistics_pro.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    decode_token,
)
