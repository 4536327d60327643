from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator

from petcare.auth.context import SessionManager
from petcare.auth.dependencies import get_current_identity, get_session_manager
from petcare.auth.identity import Identity

router = APIRouter(tags=['auth'])


class CredentialsRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


class SignUpResponse(BaseModel):
    id: int
    email: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    identity: Identity


@router.post('/signup', response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
def sign_up(data: CredentialsRequest, manager: SessionManager = Depends(get_session_manager)):
    result = manager.sign_up(data.email, data.password)
    if result.error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return SignUpResponse(id=result.user.id, email=result.user.email)


@router.post('/login', response_model=LoginResponse)
def log_in(data: CredentialsRequest, manager: SessionManager = Depends(get_session_manager)):
    if not manager.log_in(data.email, data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Invalid login credentials',
        )
    return LoginResponse(access_token=manager.store.access_token, identity=manager.identity)


@router.post('/logout', status_code=status.HTTP_204_NO_CONTENT)
def log_out(manager: SessionManager = Depends(get_session_manager)):
    manager.log_out()


@router.get('/me', response_model=Identity)
def me(identity: Identity = Depends(get_current_identity)):
    return identity
