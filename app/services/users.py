import logging

from sqlalchemy.orm import Session

from app.core.security import get_password_hash
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)


def ensure_admin(db: Session, email: str, password: str, name: str = "Administrator", phone: str = "") -> User:
    """Create the bootstrap admin account, or promote an existing user with that email."""
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(
            name=name,
            email=email,
            hashed_password=get_password_hash(password),
            phone=phone,
            role=UserRole.ADMIN,
        )
        db.add(user)
        logger.info("Created admin account %s", email)
    elif user.role != UserRole.ADMIN:
        user.role = UserRole.ADMIN
        logger.info("Promoted %s to admin", email)
    db.commit()
    db.refresh(user)
    return user
