"""
Read-only access to a host's availability rules.
"""

import logging
from typing import Iterable, List, Protocol

from ..domain.models import AvailabilityRule, default_availability_rules

logger = logging.getLogger(__name__)


class AvailabilityRuleSource(Protocol):
    def active_rules_for(self, owner_id: str) -> List[AvailabilityRule]:
        """Return the owner's active rules."""


class InMemoryRuleSource:
    """
    Rule source over a fixed list of rules.

    Owners without any configured rule get the Monday-Friday 09:00-17:00
    defaults unless ``fallback_to_defaults`` is disabled.
    """

    def __init__(self, rules: Iterable[AvailabilityRule], fallback_to_defaults: bool = True):
        self._rules = list(rules)
        self._fallback_to_defaults = fallback_to_defaults

    def active_rules_for(self, owner_id: str) -> List[AvailabilityRule]:
        owned = [rule for rule in self._rules if rule.owner_id == owner_id]

        if not owned and self._fallback_to_defaults:
            logger.info("No availability rules for owner %s, using defaults", owner_id)
            return default_availability_rules(owner_id)

        return [rule for rule in owned if rule.active]
