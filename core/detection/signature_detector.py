from typing import Dict, Any, Optional, Iterable
from utils.logger import get_logger

logger = get_logger(__name__)

class SignatureDetector:
    """
    Matches an event's details against flat field/operator/value policies.

    Policies are evaluated in the order given and the first match wins, so
    callers must pass them in a stable order.
    """

    SUPPORTED_OPERATORS = ("equals", "contains")

    def detect(self, details: Dict[str, Any], policies: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        Find the first policy whose rule matches the event details.

        Args:
            details: The event's details map
            policies: Active policies in evaluation order

        Returns:
            The matching policy, or None
        """
        for policy in policies:
            if self._match_rule(details, policy):
                logger.info(f"Event matched policy: {policy.get('name')}")
                return policy
        return None

    def _match_rule(self, details: Dict[str, Any], policy: Dict[str, Any]) -> bool:
        """
        Match event details against a single policy rule.

        A rule that is malformed or whose field is absent from the details
        does not apply.
        """
        try:
            rule = policy.get('rule')
            if not isinstance(rule, dict) or not rule.get('field'):
                logger.debug(f"Skipping policy {policy.get('name')} with malformed rule")
                return False

            field = rule['field']
            if field not in details:
                return False

            value = details[field]
            operator = rule.get('operator')
            expected = rule.get('value')

            if operator == 'equals':
                return value == expected
            elif operator == 'contains':
                return isinstance(value, str) and isinstance(expected, str) and expected in value

            logger.debug(f"Policy {policy.get('name')} uses unsupported operator {operator!r}")
            return False

        except Exception as e:
            logger.error(f"Error matching policy {policy.get('name')}: {str(e)}")
            return False
