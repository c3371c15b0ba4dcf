from typing import Dict, List, Any, Optional
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from core.database.repositories.policy_repository import PolicyRepository
from core.exceptions import PolicyValidationError
from core.models.schema.policy import Policy, PolicyCreate, PolicyUpdate
from core.rules.predefined.policies import get_default_policies
from utils.logger import get_logger

logger = get_logger(__name__)

class PolicyManager:
    def __init__(self, database):
        self.policy_repository = PolicyRepository(database)

    async def get_policies(self) -> List[Policy]:
        return [Policy(**doc) for doc in await self.policy_repository.list_policies()]

    async def get_policy_by_id(self, policy_id: str) -> Optional[Policy]:
        doc = await self.policy_repository.find_by_id(policy_id)
        return Policy(**doc) if doc else None

    async def create_policy(self, policy_data: Dict[str, Any]) -> Policy:
        policy = self._validate(PolicyCreate, policy_data)
        if await self.policy_repository.find_by_name(policy.name):
            raise PolicyValidationError(f"Policy name already exists: {policy.name}")

        try:
            doc = await self.policy_repository.create_policy(policy.model_dump(mode="json"))
        except DuplicateKeyError:
            raise PolicyValidationError(f"Policy name already exists: {policy.name}")
        logger.info(f"Created policy {policy.name}")
        return Policy(**doc)

    async def update_policy(self, policy_id: str, policy_data: Dict[str, Any]) -> Optional[Policy]:
        update = self._validate(PolicyUpdate, policy_data)
        update_data = update.model_dump(mode="json", exclude_unset=True)
        if not update_data:
            return await self.get_policy_by_id(policy_id)

        if "name" in update_data:
            if update_data["name"] is None:
                raise PolicyValidationError("Policy name cannot be empty")
            existing = await self.policy_repository.find_by_name(update_data["name"])
            if existing and existing["id"] != policy_id:
                raise PolicyValidationError(f"Policy name already exists: {update_data['name']}")
        if "rule" in update_data and update_data["rule"] is None:
            raise PolicyValidationError("Policy rule cannot be empty")
        if "is_active" in update_data and update_data["is_active"] is None:
            raise PolicyValidationError("isActive must be a boolean")

        try:
            doc = await self.policy_repository.update_policy(policy_id, update_data)
        except DuplicateKeyError:
            raise PolicyValidationError(f"Policy name already exists: {update_data.get('name')}")
        if doc:
            logger.info(f"Updated policy {doc['name']}")
        return Policy(**doc) if doc else None

    async def seed_default_policies(self) -> int:
        '''Insert any default policy whose name is not stored yet. Existing ones are left alone.'''
        created = 0
        for policy_data in get_default_policies():
            if await self.policy_repository.find_by_name(policy_data["name"]):
                continue
            try:
                await self.policy_repository.create_policy(PolicyCreate(**policy_data).model_dump(mode="json"))
                created += 1
            except DuplicateKeyError:
                continue
        if created:
            logger.info(f"Seeded {created} default policies")
        return created

    @staticmethod
    def _validate(model, policy_data: Dict[str, Any]):
        if not isinstance(policy_data, dict):
            raise PolicyValidationError("Policy must be a JSON object")
        try:
            return model.model_validate(policy_data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
            )
            raise PolicyValidationError(problems) from e
