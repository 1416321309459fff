"""
Tool-invocation gateway for UniversalAI agents.

This package exposes schema-validated tools over HTTP and guards money-moving
tools with signed confirmation tokens and an idempotency store. See DESIGN.md
for full details.
"""

__all__ = ["config", "errors"]
