from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import uuid

from fastapi import APIRouter, HTTPException, Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from ..settings import settings
from sqlalchemy.orm import Session
from ..db import get_db
from ..models import AuthSession, User as UserRow

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

STAFF_ROLES = ("professor", "admin")


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class User(BaseModel):
	id: str
	name: str
	email: str
	role: str
	level: int = 1
	xp: int = 0
	orbs: int = 0
	title: Optional[str] = None

	@classmethod
	def from_row(cls, row: UserRow) -> "User":
		return cls(
			id=row.id,
			name=row.name,
			email=row.email,
			role=row.role,
			level=row.level or 1,
			xp=row.xp or 0,
			orbs=row.orbs or 0,
			title=row.title,
		)


class SignupRequest(BaseModel):
	name: str
	email: str
	password: str


class LoginRequest(BaseModel):
	email: str
	password: str


def hash_password(password: str) -> str:
	# bcrypt only looks at the first 72 bytes
	return pwd_context.hash(password.encode("utf-8")[:72].decode("utf-8", errors="ignore"))


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(plain_password.encode("utf-8")[:72].decode("utf-8", errors="ignore"), hashed_password)


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=30)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def start_session(db: Session, user: UserRow) -> str:
	session_id = uuid.uuid4().hex
	db.add(AuthSession(session_id=session_id, user_id=user.id))
	db.commit()
	return create_access_token({"sub": user.id, "jti": session_id})


def _read_token(request: Request, bearer: Optional[str]) -> Optional[str]:
	return request.cookies.get(settings.auth_cookie_name) or bearer


def _decode(token: str) -> tuple[str, str]:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	user_id: str | None = payload.get("sub")
	jti: str | None = payload.get("jti")
	if user_id is None or jti is None:
		raise credentials_exception
	return user_id, jti


def get_current_user(
	request: Request,
	bearer: Optional[str] = Depends(oauth2_scheme),
	db: Session = Depends(get_db),
) -> UserRow:
	token = _read_token(request, bearer)
	if not token:
		raise HTTPException(status_code=401, detail="Not authenticated")
	user_id, jti = _decode(token)
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	row = db.get(AuthSession, jti)
	if not row or row.user_id != user_id:
		raise credentials_exception
	user = db.get(UserRow, user_id)
	if user is None:
		raise credentials_exception
	row.last_activity_at = datetime.utcnow()
	db.commit()
	return user


def require_staff(user: UserRow = Depends(get_current_user)) -> UserRow:
	if user.role not in STAFF_ROLES:
		raise HTTPException(status_code=403, detail="staff role required")
	return user


@router.post("/signup", status_code=201, response_model=User)
async def signup(req: SignupRequest, db: Session = Depends(get_db)):
	name = (req.name or "").strip()
	email = (req.email or "").strip().lower()
	password = req.password or ""
	if not name or not email or not password:
		raise HTTPException(status_code=400, detail="name, email and password are required")
	if len(password) < 6:
		raise HTTPException(status_code=400, detail="password must be at least 6 characters")
	existing = db.query(UserRow).filter(UserRow.email == email).first()
	if existing:
		raise HTTPException(status_code=409, detail="email already registered")
	row = UserRow(id=uuid.uuid4().hex, name=name, email=email, password_hash=hash_password(password), role="student", status="active")
	db.add(row)
	db.commit()
	logger.info("New account %s", row.id)
	return User.from_row(row)


@router.post("/login", response_model=Token)
async def login(req: LoginRequest, response: Response, db: Session = Depends(get_db)):
	email = (req.email or "").strip().lower()
	row = db.query(UserRow).filter(UserRow.email == email).first()
	if not row or not verify_password(req.password or "", row.password_hash):
		raise HTTPException(status_code=401, detail="Incorrect email or password")
	token = start_session(db, row)
	response.set_cookie(
		settings.auth_cookie_name,
		token,
		httponly=True,
		secure=settings.auth_cookie_secure,
		samesite="lax",
		max_age=settings.access_token_expire_minutes * 60,
	)
	return Token(access_token=token)


@router.post("/logout")
async def logout(request: Request, response: Response, bearer: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)):
	token = _read_token(request, bearer)
	if token:
		try:
			_, jti = _decode(token)
		except HTTPException:
			jti = None
		if jti:
			row = db.get(AuthSession, jti)
			if row is not None:
				db.delete(row)
				db.commit()
	response.delete_cookie(settings.auth_cookie_name)
	return {"ok": True}


@router.get("/me", response_model=User)
async def me(user: UserRow = Depends(get_current_user)):
	return User.from_row(user)
