"""
Core Module Package.

Shared infrastructure used by every other package.

Components:
- clock: Unified time abstraction
- config: Aggregator configuration (env / YAML)
- constants: System-wide constants
"""
