from fastapi import APIRouter, Body, Depends, HTTPException, status
from typing import Any, List
from core.database.connection import get_database
from core.exceptions import PolicyValidationError
from core.models.schema.policy import Policy
from core.rules.rule_loader import PolicyManager

router = APIRouter()

@router.get("/policies", response_model=List[Policy])
async def get_policies(db=Depends(get_database)):
    '''All policies, newest first.'''
    return await PolicyManager(db).get_policies()

@router.get("/policies/{policy_id}", response_model=Policy)
async def get_policy(policy_id: str, db=Depends(get_database)):
    '''Get a specific policy by ID.'''
    policy = await PolicyManager(db).get_policy_by_id(policy_id)
    if not policy:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Policy not found")
    return policy

@router.post("/policies", response_model=Policy)
async def create_policy(policy: Any = Body(...), db=Depends(get_database)):
    '''Create a new detection policy.'''
    try:
        return await PolicyManager(db).create_policy(policy)
    except PolicyValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.put("/policies/{policy_id}", response_model=Policy)
async def update_policy(policy_id: str, policy: Any = Body(...), db=Depends(get_database)):
    '''Edit or (de)activate an existing policy.'''
    try:
        updated = await PolicyManager(db).update_policy(policy_id, policy)
    except PolicyValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Policy not found")
    return updated
