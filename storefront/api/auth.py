from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.application.auth_service import AuthService
from storefront.application.schemas import AuthResponse, LoginRequest, RegisterRequest
from storefront.infrastructure.db import get_db

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    return AuthService(db).register(payload)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return AuthService(db).login(payload)
