"""
User endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .system import FactoringSystem, get_factoring_system
from .schemas import CreateUserRequest, UpdateUserRequest, AssignClientRequest, user_response
from ..users import UserRole


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Create a desk user"""
    try:
        user = system.user_manager.create_user(
            name=request.name,
            email=request.email,
            role=UserRole(request.role),
            phone=request.phone
        )
        return user_response(user)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("")
async def list_users(system: FactoringSystem = Depends(get_factoring_system)):
    """List users"""
    users = system.user_manager.list_users()
    return {"users": [user_response(u) for u in users], "count": len(users)}


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Get a user"""
    user = system.user_manager.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user_response(user)


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Update a user"""
    if not system.user_manager.get_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    try:
        user = system.user_manager.update_user(user_id, **request.to_updates())
        return user_response(user)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Delete a user"""
    if not system.user_manager.delete_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted successfully"}


@router.post("/{user_id}/clients")
async def assign_client(
    user_id: str,
    request: AssignClientRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Assign a client to a user"""
    if not system.user_manager.get_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    if not system.directory_manager.get_client(request.client_id):
        raise HTTPException(status_code=404, detail="Client not found")

    user = system.user_manager.assign_client(user_id, request.client_id)
    return user_response(user)


@router.delete("/{user_id}/clients/{client_id}")
async def remove_client(
    user_id: str,
    client_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Remove a client assignment"""
    if not system.user_manager.get_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    try:
        user = system.user_manager.remove_client(user_id, client_id)
        return user_response(user)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
