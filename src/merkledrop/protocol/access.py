"""
merkledrop/protocol/access.py

Principal-based authorization for privileged operations.
"""

import logging
from enum import Enum

from ..config import Config
from ..errors import AuthorizationError

logger = logging.getLogger("merkledrop.protocol.access")


class Role(Enum):
    """
    Privileged roles and the Config field holding each principal.

    OWNER: may replace the config
    BACKEND_OPERATOR: may reset the airdrop round
    FUNDING_SOURCE: may deliver funding; funds arrive through the reward
        token's receive hook, so the principal is the reward token
    """
    OWNER = "owner"
    BACKEND_OPERATOR = "backend_operator"
    FUNDING_SOURCE = "reward_token"

    def principal(self, config: Config) -> str:
        """Address allowed to act in this role."""
        return getattr(config, self.value)


def require_role(role: Role, caller: str, config: Config) -> None:
    """
    Check that caller holds role.

    Raises:
        AuthorizationError: If caller is not the role's principal
    """
    if caller != role.principal(config):
        logger.warning(f"Rejected {caller}: {role.name.lower()} required")
        raise AuthorizationError(f"Unauthorized: only {role.name.lower()} may perform this action")

