"""
Rule catalog - registered rules in a fixed order with enabled flags.

Audits take an immutable snapshot of the enabled rules when they start, so
enabling or disabling a rule never affects an audit already in progress.
"""

import logging
import threading
from typing import Any, Iterable

from ..exceptions import NoEnabledRules, require_rule
from ..models import RuleDefinition
from .base import AuditRule

logger = logging.getLogger(__name__)


class RuleCatalog:
    """Ordered registry of audit rules. Registration order is evaluation order."""

    def __init__(self, rules: Iterable[AuditRule] = (), disabled: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._rules: dict[str, AuditRule] = {}
        self._enabled: dict[str, bool] = {}
        disabled = set(disabled)
        for rule in rules:
            self.register(rule, enabled=rule.ID not in disabled)

    def register(self, rule: AuditRule, enabled: bool = True) -> None:
        """Add a rule at the end of the evaluation order."""
        with self._lock:
            if rule.ID in self._rules:
                raise ValueError(f"Rule already registered: {rule.ID}")
            self._rules[rule.ID] = rule
            self._enabled[rule.ID] = enabled

    def set_enabled(self, rule_id: str, enabled: bool) -> RuleDefinition:
        """Enable or disable a rule. Raises NotFound for unknown ids."""
        with self._lock:
            rule = require_rule(self._rules.get(rule_id), rule_id)
            self._enabled[rule_id] = enabled
            logger.info(f"Rule {rule_id} {'enabled' if enabled else 'disabled'}")
            return rule.definition(enabled)

    def update_config(self, rule_id: str, **config: Any) -> RuleDefinition:
        """
        Merge config into a rule's settings.

        The rule is replaced by a new instance at the same position, so audits
        holding an earlier enabled_rules() snapshot keep the old settings.

        Raises:
            NotFound: Unknown rule id
            ValueError: A key the rule does not accept
        """
        with self._lock:
            rule = require_rule(self._rules.get(rule_id), rule_id)
            unknown = sorted(set(config) - set(rule.DEFAULT_CONFIG))
            if unknown:
                raise ValueError(f"Unknown config for rule {rule_id}: {', '.join(unknown)}")
            updated = type(rule)(severity=rule.severity, **{**rule.config, **config})
            self._rules[rule_id] = updated
            logger.info(f"Rule {rule_id} config updated: {config}")
            return updated.definition(self._enabled[rule_id])

    def get(self, rule_id: str) -> RuleDefinition:
        with self._lock:
            rule = require_rule(self._rules.get(rule_id), rule_id)
            return rule.definition(self._enabled[rule_id])

    def enabled_rules(self) -> tuple[AuditRule, ...]:
        """
        Immutable snapshot of the enabled rules in registration order.

        Raises:
            NoEnabledRules: If every rule is disabled
        """
        with self._lock:
            rules = tuple(rule for rule_id, rule in self._rules.items() if self._enabled[rule_id])
        if not rules:
            raise NoEnabledRules("No audit rules are enabled")
        return rules

    def list_rules(self) -> list[RuleDefinition]:
        with self._lock:
            return [rule.definition(self._enabled[rule_id]) for rule_id, rule in self._rules.items()]

    def category_counts(self) -> dict[str, dict[str, int]]:
        """Per category: total registered rules and how many are enabled."""
        counts: dict[str, dict[str, int]] = {}
        for definition in self.list_rules():
            entry = counts.setdefault(definition.category, {"total": 0, "enabled": 0})
            entry["total"] += 1
            if definition.enabled:
                entry["enabled"] += 1
        return counts
