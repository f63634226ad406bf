# civic_hierarchy/routes/auth.py
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm

from civic_hierarchy.dependencies.auth import auth_service, authenticate_user
from civic_hierarchy.schemas.user import Token

router = APIRouter()


@router.post("/token", response_model=Token)
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Authenticates a user (username = mobile number or email) and returns an
    access token upon successful login.
    """
    user = await authenticate_user(form_data.username, form_data.password)
    access_token = auth_service.create_access_token(data={"sub": str(user.id)})
    return {"access_token": access_token, "token_type": "bearer"}
