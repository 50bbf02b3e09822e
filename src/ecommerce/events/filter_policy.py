"""
SNS filter policy evaluation on message attributes.

A policy maps attribute names to lists of accepted values. A message matches
when every attribute named by the policy is present and one of its accepted
values matches. Accepted values are exact strings, or one of the operators
``{"prefix": "..."}``, ``{"anything-but": [...]}`` and ``{"exists": bool}``.
"""

from typing import Any, Dict, Optional

from ecommerce.events.bus import FilterPolicy


def _value_matches(rule: Any, value: Optional[str]) -> bool:
    if isinstance(rule, dict):
        if 'exists' in rule:
            return (value is not None) == bool(rule['exists'])
        if value is None:
            return False
        if 'prefix' in rule:
            return value.startswith(rule['prefix'])
        if 'anything-but' in rule:
            excluded = rule['anything-but']
            if not isinstance(excluded, list):
                excluded = [excluded]
            return value not in [str(item) for item in excluded]
        raise ValueError(f'Unsupported filter policy operator: {sorted(rule)}')
    return value is not None and value == str(rule)


def matches(filter_policy: Optional[FilterPolicy], attributes: Dict[str, str]) -> bool:
    """
    Check whether message attributes satisfy a filter policy.

    Args:
        filter_policy: Policy to evaluate, None matches every message
        attributes: Message attributes as plain strings

    Returns:
        True if the message should be delivered
    """
    if not filter_policy:
        return True

    for attribute_name, accepted in filter_policy.items():
        rules = accepted if isinstance(accepted, list) else [accepted]
        value = attributes.get(attribute_name)
        if not any(_value_matches(rule, value) for rule in rules):
            return False
    return True
