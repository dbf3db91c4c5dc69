from datetime import datetime, timedelta, timezone
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session
import jwt

from config import Settings
from database import get_db, User
from schemas import SuccessResponse, Token, UserCreate, UserLogin

logger = logging.getLogger(__name__)

auth_router = APIRouter()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def get_app_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(data: dict, settings: Settings):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.access_token_expire_minutes
    )
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


def user_from_token(token: str, db: Session, settings: Settings) -> User:
    """Resolve a bearer token to its user or raise a 401 HTTPException."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        username = payload.get("sub")
        if username is None:
            raise credentials_exception
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise credentials_exception

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise credentials_exception
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    return user_from_token(token, db, settings)


@auth_router.post(
    "/register",
    response_model=SuccessResponse[Token],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    user: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    db_user = db.query(User).filter(User.username == user.username).first()
    if db_user:
        raise HTTPException(status_code=400, detail="Username already registered")

    new_user = User(username=user.username, password_hash=hash_password(user.password))
    db.add(new_user)
    db.commit()
    logger.info("Registered user %s", user.username)

    access_token = create_access_token(data={"sub": user.username}, settings=settings)
    return SuccessResponse(data=Token(access_token=access_token), message="User registered")


@auth_router.post("/login", response_model=SuccessResponse[Token])
async def login(
    user: UserLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    db_user = db.query(User).filter(User.username == user.username).first()
    if not db_user or not verify_password(user.password, db_user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    access_token = create_access_token(data={"sub": user.username}, settings=settings)
    return SuccessResponse(data=Token(access_token=access_token))
