# backend/routes/users.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.user import TokenData, UserPage, UserResponse, UserUpdate
from utils.audit import client_ip, write_log
from utils.hashing import get_password_hash
from utils.query import apply_search, apply_sort, page_params, paginate
from utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/api", tags=["Users"])

ROLES = {"admin", "staff"}
SORT_FIELDS = {"id": User.id, "email": User.email, "name": User.name, "role": User.role, "time": User.time}


def get_user_or_404(user_id: int, db: Session = Depends(get_db)) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# Retrieve a list of users with filtering, sorting, and pagination (Admin only)
@router.get("/users", response_model=UserPage)
def list_users(
    page: Optional[str] = Query(None),
    perpage: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search by e-mail or name"),
    role: Optional[str] = Query(None),
    sort: Optional[str] = Query("id"),
    order: Optional[str] = Query("asc"),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(role_required("admin")),
):
    page, perpage = page_params(page, perpage)
    query = apply_search(db.query(User), [User.email, User.name], search)
    if role:
        query = query.filter(func.lower(User.role) == role.lower())
    query, sort_key, direction = apply_sort(query, SORT_FIELDS, sort, order, default="id")
    items, total, pages = paginate(query, page, perpage)
    return {
        "total": total, "page": page, "perpage": perpage, "pages": pages,
        "sort": sort_key, "order": direction, "data": items,
    }


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    current_user: TokenData = Depends(get_current_user),
    user: User = Depends(get_user_or_404),
):
    return user


# Update a profile; admins may edit anyone and change roles
@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    payload: UserUpdate,
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db),
):
    is_admin = current_user.role == "admin"
    if not is_admin and current_user.id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    if payload.email is not None:
        email = payload.email.strip().lower()
        taken = db.query(User.id).filter(func.lower(User.email) == email, User.id != user.id).first()
        if taken:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
        user.email = email
    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.password is not None:
        user.password_hash = get_password_hash(payload.password)
    if payload.role is not None:
        if not is_admin:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
        if payload.role.lower() not in ROLES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown role")
        user.role = payload.role.lower()

    db.commit()
    db.refresh(user)

    write_log(db, actor=current_user.name, action="USER_UPDATE", resource="users",
              ip=client_ip(request), meta={"id": user.id})
    db.refresh(user)
    return user


# Delete a user account (Admin only)
@router.delete("/users/{user_id}")
def delete_user(
    request: Request,
    current_user: TokenData = Depends(role_required("admin")),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db),
):
    # Prevent self-deletion
    if user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")

    user_id, email = user.id, user.email
    db.delete(user)
    db.commit()

    write_log(db, actor=current_user.name, action="USER_DELETE", resource="users",
              ip=client_ip(request), meta={"id": user_id})
    return {"message": f"User {email} has been deleted"}
