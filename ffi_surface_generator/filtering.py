#!/usr/bin/env python3
"""
Method eligibility: decides which methods receive an FFI wrapper.

Checks run in a fixed order and stop at the first rejection:

1. fake-inherited methods (copies kept only for overload bookkeeping)
2. user-supplied filter predicates, in configuration order
3. members of the generic flags container class
4. abstract-class constructors, non-public members, signals
5. own template parameters, non-whitelisted template instantiations
6. any involved type mentioning an unresolved template parameter

Each rejection is logged at DEBUG level. A predicate that raises aborts the
run with PolicyFailure.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Pattern, Union
import logging

from .errors import PolicyFailure
from .models import FfiGeneratorConfig, FilterFn, MethodKind, NativeMethod, TypeDatabase, Visibility

logger = logging.getLogger(__name__)


class MethodEligibilityFilter:
    def __init__(self, database: TypeDatabase, config: FfiGeneratorConfig) -> None:
        self.database = database
        self.config = config

    def is_eligible(self, method: NativeMethod) -> bool:
        reason = self.rejection_reason(method)
        if reason is not None:
            logger.debug("Skipping method (%s): %s", reason, method.short_text())
            return False
        return True

    def rejection_reason(self, method: NativeMethod) -> Optional[str]:
        """
        Why the method gets no wrapper, or None if it is eligible.
        """
        if method.is_fake_inherited_method:
            return "fake inherited"

        for predicate in self.config.filters:
            try:
                allowed = predicate(method)
            except Exception as e:
                raise PolicyFailure(method.short_text()) from e
            if not allowed:
                return "blacklisted by filter"

        class_name = method.class_name
        if class_name is not None and class_name == self.config.flags_class_name:
            return "flags container member"

        membership = method.class_membership
        if membership is not None:
            if membership.kind == MethodKind.CONSTRUCTOR and self.database.has_pure_virtual_methods(class_name or ""):
                return f"constructor of abstract class {class_name}"
            if membership.visibility == Visibility.PRIVATE:
                return "private"
            if membership.visibility == Visibility.PROTECTED:
                return "protected"
            if membership.is_signal:
                return "signal"

        if method.template_arguments is not None:
            return "template method"
        if method.template_arguments_values is not None and not method.is_ffi_whitelisted:
            return "template instantiation not whitelisted"

        if any(t.contains_template_parameter() for t in method.all_involved_types()):
            return "involves unresolved template parameter"
        return None


# --------------------------
# Predicate factories
# --------------------------

def exclude_methods_matching(pattern: Union[str, Pattern[str]]) -> FilterFn:
    """
    Predicate rejecting methods whose qualified name ('Class::method') matches.
    """
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    def _predicate(method: NativeMethod) -> bool:
        return regex.search(method.qualified_name) is None

    return _predicate


def exclude_classes(class_names: Iterable[str]) -> FilterFn:
    """
    Predicate rejecting every member of the given classes.
    """
    excluded = frozenset(class_names)

    def _predicate(method: NativeMethod) -> bool:
        return method.class_name not in excluded

    return _predicate


__all__ = [
    "MethodEligibilityFilter",
    "exclude_methods_matching",
    "exclude_classes",
]
