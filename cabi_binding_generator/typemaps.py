#!/usr/bin/env python3
"""
Typemaps: code fragments that convert values between the C ABI and C++.

A typemap is looked up by (method, type). Methods used by the C wrapper emitter:

- "ctype":   the C type of a parameter or return value (optional override)
- "in":      converts the C parameter `$input` into the C++ local `$1`
- "check":   validates the converted local `$1` (alias `$target`)
- "out":     converts the C++ result `$1` into the C return value `$result`
- "freearg": releases whatever "in" allocated for `$1` (alias `$source`)

Lookup order: user rules matching the exact type, user rules matching the type
after typedef resolution, user rules matching the type category, then the
default rules below, which are keyed by category only. A category is computed
by `type_mapping.TypeResolver.category()`.

Special variables expanded in the code:

  $1 $1_ltype $1_type $1_basetype $input $result $owner $symname $null
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .models import CppType

logger = logging.getLogger(__name__)

TYPEMAP_METHODS = ("ctype", "in", "check", "out", "freearg")

# Categories produced by TypeResolver.category()
CATEGORIES = (
    "void",
    "builtin",
    "builtin_cref",
    "builtin_ref",
    "builtin_ptr",
    "enum",
    "enum_cref",
    "enum_ptr",
    "class_ptr",
    "class_ref",
    "class_value",
    "unknown_ptr",
    "unknown_ref",
    "unknown_value",
    "funcptr",
)


@dataclass(frozen=True)
class Typemap:
    method: str
    code: str
    numinputs: int = 1


@dataclass(frozen=True)
class TypemapRule:
    """
    A user supplied typemap. Exactly one of `type` and `category` selects
    what the rule applies to.
    """
    method: str
    code: str
    type: Optional[CppType] = None
    category: Optional[str] = None
    numinputs: int = 1

    def __post_init__(self) -> None:
        if self.method not in TYPEMAP_METHODS:
            raise ValueError("Unknown typemap method %r" % self.method)
        if (self.type is None) == (self.category is None):
            raise ValueError("Typemap rule for %r needs either a type or a category" % self.method)
        if self.category is not None and self.category not in CATEGORIES:
            raise ValueError("Unknown typemap category %r" % self.category)

    def to_typemap(self) -> Typemap:
        return Typemap(self.method, self.code, self.numinputs)


_CONVERT_IN = "$1 = ($1_ltype) $input;"
_ADDRESS_IN = "$1 = ($1_ltype) &$input;"
_COPY_OUT = "$result = $1;"
_DEREF_OUT = "$result = *$1;"

DEFAULT_TYPEMAPS: Dict[str, Dict[str, str]] = {
    "in": {
        "builtin": _CONVERT_IN,
        "builtin_cref": _ADDRESS_IN,
        "builtin_ref": _CONVERT_IN,
        "builtin_ptr": _CONVERT_IN,
        "enum": _CONVERT_IN,
        "enum_cref": _ADDRESS_IN,
        "enum_ptr": _CONVERT_IN,
        "class_ptr": _CONVERT_IN,
        "class_ref": _CONVERT_IN,
        "class_value": _CONVERT_IN,
        "unknown_ptr": _CONVERT_IN,
        "unknown_ref": _CONVERT_IN,
        "unknown_value": _CONVERT_IN,
        "funcptr": _CONVERT_IN,
    },
    "out": {
        "builtin": _COPY_OUT,
        "builtin_cref": _DEREF_OUT,
        "builtin_ref": _COPY_OUT,
        "builtin_ptr": _COPY_OUT,
        "enum": _COPY_OUT,
        "enum_cref": _DEREF_OUT,
        "enum_ptr": _COPY_OUT,
        "class_ptr": _COPY_OUT,
        "class_ref": _COPY_OUT,
        "class_value": _COPY_OUT,
        "unknown_ptr": _COPY_OUT,
        "unknown_ref": _COPY_OUT,
        "unknown_value": _COPY_OUT,
        "funcptr": _COPY_OUT,
    },
}


class TypemapTable:
    """
    Typemap registry. Lookups never fail loudly: a missing typemap is `None`
    and the caller decides how to degrade.
    """

    def __init__(self, rules: Optional[Iterable[TypemapRule]] = None, use_defaults: bool = True) -> None:
        self._by_type: Dict[str, Dict[CppType, TypemapRule]] = {}
        self._by_category: Dict[str, Dict[str, TypemapRule]] = {}
        self.use_defaults = use_defaults
        for r in rules or ():
            self.add(r)

    def add(self, rule: TypemapRule) -> None:
        if rule.type is not None:
            self._by_type.setdefault(rule.method, {})[rule.type] = rule
        else:
            self._by_category.setdefault(rule.method, {})[rule.category or ""] = rule

    def has_user_rule(self, method: str, types: Sequence[CppType], category: str) -> bool:
        by_type = self._by_type.get(method, {})
        return any(t in by_type for t in types) or category in self._by_category.get(method, {})

    def lookup(self, method: str, types: Sequence[CppType], category: str) -> Optional[Typemap]:
        """
        Find the typemap for `method`. `types` lists the spellings to try, most
        specific first (as written, then typedef resolved).
        """
        by_type = self._by_type.get(method, {})
        for t in types:
            rule = by_type.get(t)
            if rule is not None:
                return rule.to_typemap()
        rule = self._by_category.get(method, {}).get(category)
        if rule is not None:
            return rule.to_typemap()
        if self.use_defaults:
            code = DEFAULT_TYPEMAPS.get(method, {}).get(category)
            if code is not None:
                return Typemap(method, code)
        return None

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_type.values()) + sum(len(v) for v in self._by_category.values())


_SPECIAL_VAR_RE = re.compile(r"\$(1_ltype|1_type|1_basetype|1|input|result|owner|symname|null|target|source)\b")


def expand_typemap(code: str, values: Dict[str, str]) -> str:
    """
    Replace special variables in typemap code. Unknown variables are left
    untouched so that later passes (e.g. `$null`) can still expand them.
    """
    def repl(m: "re.Match[str]") -> str:
        key = m.group(1)
        return values.get(key, m.group(0))

    return _SPECIAL_VAR_RE.sub(repl, code)


def insert_result_cast(code: str, ctype: str) -> str:
    """
    Add an explicit cast to the C return type after a leading `$result = `,
    as the C++ result and the C return value may differ in type.
    """
    marker = "$result = "
    idx = code.find(marker)
    if idx == 0 or (idx > 0 and code[idx - 1] in " \n"):
        at = idx + len(marker)
        return code[:at] + "(%s) " % ctype + code[at:]
    return code


__all__ = [
    "CATEGORIES",
    "DEFAULT_TYPEMAPS",
    "TYPEMAP_METHODS",
    "Typemap",
    "TypemapRule",
    "TypemapTable",
    "expand_typemap",
    "insert_result_cast",
]
