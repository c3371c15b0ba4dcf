from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel
from core.models.schema.common import CamelModel

class RuleOperator(str, Enum):
    EQUALS = "equals"
    CONTAINS = "contains"


class PolicyRule(BaseModel):
    field: str
    operator: RuleOperator
    value: str


class PolicyBase(CamelModel):
    name: str
    rule: PolicyRule
    is_active: bool = True
    mitre_tactic: Optional[str] = None
    mitre_technique_id: Optional[str] = None
    mitre_technique_name: Optional[str] = None

class PolicyCreate(PolicyBase):
    pass

class PolicyUpdate(CamelModel):
    name: Optional[str] = None
    rule: Optional[PolicyRule] = None
    is_active: Optional[bool] = None
    mitre_tactic: Optional[str] = None
    mitre_technique_id: Optional[str] = None
    mitre_technique_name: Optional[str] = None

class Policy(CamelModel):
    # Stored rules are served as-is; a malformed one is skipped by the matcher
    id: str
    name: str
    rule: dict
    is_active: bool = True
    mitre_tactic: Optional[str] = None
    mitre_technique_id: Optional[str] = None
    mitre_technique_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
