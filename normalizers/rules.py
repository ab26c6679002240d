"""
Normalizers - Symbol decoding rules.

A source's dialect is an ordered tuple of rules. Each rule either rewrites
the working symbol (strip a prefix, strip a suffix, rename) or resolves it
to a ClassifiedSymbol. The first resolving rule wins; a pipeline that
resolves nothing falls through to the caller's default.

All rules are immutable and side-effect free.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Union

from data_sources.models import AssetClass, ClassifiedSymbol
from normalizers.asset_sets import (
    CANONICAL_FOREX,
    FOREX_BASES,
    KNOWN_FOREX,
)


@dataclass(frozen=True)
class SymbolState:
    """Working symbol plus markers set by earlier rules."""
    symbol: str
    flags: frozenset[str] = field(default_factory=frozenset)

    def with_symbol(self, symbol: str) -> "SymbolState":
        return replace(self, symbol=symbol)

    def with_flag(self, flag: str) -> "SymbolState":
        return replace(self, flags=self.flags | {flag})


RuleResult = Union[SymbolState, ClassifiedSymbol]


class Rule(ABC):
    """One step of a decoding pipeline."""

    @abstractmethod
    def apply(self, state: SymbolState) -> RuleResult:
        pass


def run_rules(rules: tuple[Rule, ...], state: SymbolState) -> RuleResult:
    """Apply rules in order until one resolves."""
    for rule in rules:
        result = rule.apply(state)
        if isinstance(result, ClassifiedSymbol):
            return result
        state = result
    return state


def canonical_forex_pair(base: str) -> str:
    """
    Canonical pair for a non-USD currency.

    Prefers whichever of XXXUSD / USDXXX is the market-convention form,
    defaulting to XXXUSD.
    """
    forward = base + "USD"
    reverse = "USD" + base
    if forward in CANONICAL_FOREX:
        return forward
    if reverse in CANONICAL_FOREX:
        return reverse
    return forward


# =========================================================
# REWRITING RULES
# =========================================================


@dataclass(frozen=True)
class StripPrefix(Rule):
    """Remove the first matching prefix, optionally marking the state."""
    prefixes: tuple[str, ...]
    flag: Optional[str] = None

    def apply(self, state: SymbolState) -> RuleResult:
        for prefix in self.prefixes:
            if state.symbol.startswith(prefix):
                state = state.with_symbol(state.symbol[len(prefix):])
                return state.with_flag(self.flag) if self.flag else state
        return state


@dataclass(frozen=True)
class StripSuffix(Rule):
    """Remove the first matching suffix."""
    suffixes: tuple[str, ...]

    def apply(self, state: SymbolState) -> RuleResult:
        for suffix in self.suffixes:
            if state.symbol.endswith(suffix) and len(state.symbol) > len(suffix):
                return state.with_symbol(state.symbol[:-len(suffix)])
        return state


@dataclass(frozen=True)
class ReplaceFirst(Rule):
    """Replace the first occurrence of a substring."""
    old: str
    new: str = ""

    def apply(self, state: SymbolState) -> RuleResult:
        return state.with_symbol(state.symbol.replace(self.old, self.new, 1))


@dataclass(frozen=True)
class Rename(Rule):
    """Rename a whole symbol through a lookup table."""
    mapping: Mapping[str, str]

    def apply(self, state: SymbolState) -> RuleResult:
        return state.with_symbol(self.mapping.get(state.symbol, state.symbol))


# =========================================================
# RESOLVING RULES
# =========================================================


@dataclass(frozen=True)
class MatchSet(Rule):
    """Resolve when the symbol belongs to a known set."""
    members: frozenset[str]
    asset_class: AssetClass

    def apply(self, state: SymbolState) -> RuleResult:
        if state.symbol in self.members:
            return ClassifiedSymbol(state.symbol, self.asset_class)
        return state


@dataclass(frozen=True)
class ForexPair(Rule):
    """
    Resolve forex symbols to their canonical pair.

    Matches known pairs (reversed spellings are canonicalized), XXXUSD /
    USDXXX built from a known currency and, when enabled, a bare currency
    code such as EUR.
    """
    expand_bare_base: bool = False

    def apply(self, state: SymbolState) -> RuleResult:
        symbol = state.symbol

        if self.expand_bare_base and symbol in FOREX_BASES:
            return ClassifiedSymbol(canonical_forex_pair(symbol), AssetClass.FOREX)

        if len(symbol) == 6 and "USD" in (symbol[:3], symbol[3:]):
            other = symbol[3:] if symbol.startswith("USD") else symbol[:3]
            if other in FOREX_BASES:
                return ClassifiedSymbol(canonical_forex_pair(other), AssetClass.FOREX)

        if symbol in KNOWN_FOREX:
            return ClassifiedSymbol(symbol, AssetClass.FOREX)
        return state


@dataclass(frozen=True)
class ResidualSuffix(Rule):
    """Resolve SYMBOL+suffix when SYMBOL is a known member (AAPLX -> AAPL)."""
    suffix: str
    members: frozenset[str]
    asset_class: AssetClass

    def apply(self, state: SymbolState) -> RuleResult:
        if state.symbol.endswith(self.suffix):
            base = state.symbol[:-len(self.suffix)]
            if base in self.members:
                return ClassifiedSymbol(base, self.asset_class)
        return state


@dataclass(frozen=True)
class SuffixClass(Rule):
    """Resolve any symbol carrying a suffix to a fixed class, suffix removed."""
    suffix: str
    asset_class: AssetClass

    def apply(self, state: SymbolState) -> RuleResult:
        if state.symbol.endswith(self.suffix) and len(state.symbol) > len(self.suffix):
            return ClassifiedSymbol(state.symbol[:-len(self.suffix)], self.asset_class)
        return state


@dataclass(frozen=True)
class FlagDefault(Rule):
    """Resolve to a fixed class when an earlier rule set a flag."""
    flag: str
    asset_class: AssetClass

    def apply(self, state: SymbolState) -> RuleResult:
        if self.flag in state.flags:
            return ClassifiedSymbol(state.symbol, self.asset_class)
        return state


@dataclass(frozen=True)
class Always(Rule):
    """Resolve unconditionally."""
    asset_class: AssetClass

    def apply(self, state: SymbolState) -> RuleResult:
        return ClassifiedSymbol(state.symbol, self.asset_class)


@dataclass(frozen=True)
class CategoryPrefix(Rule):
    """
    Venue category prefix (e.g. BingX NCFX = forex).

    When the symbol carries one of the prefixes, the remainder is decoded by
    the nested rules; anything they leave unresolved gets the category's
    asset class. Symbols without the prefix pass through untouched.
    """
    prefixes: tuple[str, ...]
    asset_class: AssetClass
    rules: tuple[Rule, ...] = ()

    def apply(self, state: SymbolState) -> RuleResult:
        for prefix in self.prefixes:
            if state.symbol.startswith(prefix):
                remainder = state.symbol[len(prefix):] or state.symbol
                result = run_rules(self.rules, state.with_symbol(remainder))
                if isinstance(result, ClassifiedSymbol):
                    return result
                return ClassifiedSymbol(result.symbol or state.symbol, self.asset_class)
        return state
