# Authentication logic
import base64
import hashlib
import logging
import os
import re
import uuid
from typing import List, Optional, Tuple

from portal.auth.permissions import SUPERADMIN, PermissionModel
from portal.clock import Clock, utcnow
from portal.errors import DuplicateUser, InvalidCredentials, NotFound, UserBlocked, WeakPassword
from portal.models.user import CurrentUser, User
from portal.services.store import DocumentStore

logger = logging.getLogger(__name__)

COLLECTION = "users"
ITERATIONS = 100000
SECRET_FIELDS = ("password", "salt")


def _to_user(doc: dict) -> User:
    return User(**{k: v for k, v in doc.items() if k not in SECRET_FIELDS})


class AuthService:
    """
    A service class for handling user authentication and account administration.
    """

    def __init__(self, store: DocumentStore, permissions: PermissionModel, superadmin_email: Optional[str] = None,
                 clock: Clock = utcnow):
        """
        Initializes the AuthService.

        Args:
            store (DocumentStore): Backing document store.
            permissions (PermissionModel): Role flags used for admin operations.
            superadmin_email (Optional[str]): Account that registers as superadmin.
        """
        self.store = store
        self.permissions = permissions
        self.superadmin_email = (superadmin_email or "").lower() or None
        self.clock = clock

    def _hash_password(self, password: str, salt: Optional[bytes] = None) -> Tuple[bytes, bytes]:
        """Hashes a password with a salt."""
        if salt is None:
            salt = os.urandom(16)
        return hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, ITERATIONS), salt

    def _check_password(self, stored_password, salt, provided_password: str) -> bool:
        """Verifies a password against a stored hash and salt (raw bytes or base64)."""
        if salt is None or stored_password is None:
            return False
        try:
            if isinstance(salt, str):
                salt = base64.b64decode(salt)
            if isinstance(stored_password, str):
                stored_password = base64.b64decode(stored_password)
        except (ValueError, TypeError):
            return False
        return stored_password == self._hash_password(provided_password, salt)[0]

    @staticmethod
    def _validate_password_strength(password: str) -> bool:
        return (len(password) >= 8 and re.search(r"[A-Z]", password) is not None
                and re.search(r"[a-z]", password) is not None and re.search(r"[0-9]", password) is not None)

    def _find_by_email(self, email: str) -> Optional[dict]:
        docs = self.store.get_docs(COLLECTION, [("email", "==", email.lower())])
        return docs[0] if docs else None

    @staticmethod
    def _current_user(doc: dict) -> CurrentUser:
        return CurrentUser(uid=doc["id"], email=doc["email"], display_name=doc.get("displayName", ""),
                           role=doc.get("role", "user"), blocked=doc.get("blocked", False))

    def register_user(self, email: str, display_name: str, password: str) -> CurrentUser:
        """
        Registers a new user.

        Raises:
            WeakPassword: Fewer than 8 characters or missing upper, lower or digit.
            DuplicateUser: The e-mail is already registered.
        """
        email = email.strip().lower()
        if not self._validate_password_strength(password):
            raise WeakPassword("A senha deve ter no mínimo 8 caracteres, com maiúscula, minúscula e número.")
        if self._find_by_email(email) is not None:
            raise DuplicateUser("Este e-mail já está em uso.")

        role = SUPERADMIN if email == self.superadmin_email else "user"
        now = self.clock()
        uid = uuid.uuid4().hex
        user = User(uid=uid, email=email, display_name=display_name, role=role, created_at=now, last_active=now)
        hashed_pw, salt = self._hash_password(password)
        user_data = user.to_document()
        user_data.update({
            "password": base64.b64encode(hashed_pw).decode('utf-8'),
            "salt": base64.b64encode(salt).decode('utf-8'),
        })
        self.store.set_doc(COLLECTION, uid, user_data)
        logger.info(f"Usuário '{email}' registrado como '{role}'.")
        return self._current_user(user_data | {"id": uid})

    def login(self, email: str, password: str) -> CurrentUser:
        """
        Authenticates a user.

        Raises:
            InvalidCredentials: Unknown e-mail or wrong password.
            UserBlocked: The account is blocked.
        """
        user_data = self._find_by_email(email.strip())
        if user_data is None or not self._check_password(user_data.get('password'), user_data.get('salt'), password):
            logger.warning(f"Falha de login para '{email}'.")
            raise InvalidCredentials("Usuário ou senha incorretos.")
        if user_data.get("blocked"):
            raise UserBlocked("Sua conta foi bloqueada. Entre em contato com um administrador.")
        self.store.update_doc(COLLECTION, user_data["id"], {"lastActive": self.clock()})
        return self._current_user(user_data)

    def get_user(self, uid: str) -> User:
        doc = self.store.get_doc(COLLECTION, uid)
        if doc is None:
            raise NotFound(COLLECTION, uid)
        return _to_user(doc)

    def get_all_users(self) -> List[User]:
        return sorted((_to_user(doc) for doc in self.store.get_docs(COLLECTION)), key=lambda u: u.email)

    def update_role(self, actor: CurrentUser, uid: str, role: str) -> None:
        self.permissions.require(actor, "roles-management", "usuarios")
        if role != SUPERADMIN and role not in self.permissions.roles:
            raise ValueError(f"Cargo desconhecido: {role}")
        if role == SUPERADMIN and actor.role != SUPERADMIN:
            raise ValueError("Somente um superadmin pode conceder o cargo superadmin.")
        self.get_user(uid)
        self.store.update_doc(COLLECTION, uid, {"role": role})
        logger.info(f"Cargo de {uid} alterado para '{role}' por {actor.email}.")

    def block_user(self, actor: CurrentUser, uid: str, blocked: bool = True) -> None:
        self.permissions.require(actor, "usuarios")
        if uid == actor.uid:
            raise ValueError("Você não pode bloquear a própria conta.")
        self.get_user(uid)
        self.store.update_doc(COLLECTION, uid, {"blocked": blocked})
        logger.info(f"Usuário {uid} {'bloqueado' if blocked else 'desbloqueado'} por {actor.email}.")
