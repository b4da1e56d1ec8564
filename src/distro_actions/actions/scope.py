"""Decide which distributions an action applies to."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern

from .models import Action, AllScope, DistroScope, PatternScope, SpecificScope

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Optional[Pattern[str]]:
    """Compile a scope pattern, or None if it is not a usable regex.

    Failures are cached too, so a bad pattern is only reported once.
    """
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except (re.error, RecursionError, OverflowError) as exc:
        logger.warning("Invalid regex pattern %r in action configuration: %s", pattern, exc)
        return None


def pattern_matches(pattern: str, name: str) -> bool:
    if not isinstance(pattern, str) or not isinstance(name, str):
        return False
    compiled = _compile(pattern)
    if compiled is None:
        return False
    return compiled.search(name) is not None


def matches(scope: DistroScope, name: str) -> bool:
    """Return whether `scope` covers the distribution called `name`.

    Never raises: an invalid pattern simply matches nothing.
    """
    if isinstance(scope, AllScope):
        return True
    if isinstance(scope, SpecificScope):
        return name in scope.distros
    if isinstance(scope, PatternScope):
        return pattern_matches(scope.pattern, name)
    return False


def action_applies(action: Action, name: str) -> bool:
    return matches(action.scope, name)


def applicable_actions(actions: Iterable[Action], name: str) -> List[Action]:
    """Actions visible for `name`, in display order."""
    return sorted(
        (a for a in actions if action_applies(a, name)),
        key=lambda a: (a.order, a.name),
    )
