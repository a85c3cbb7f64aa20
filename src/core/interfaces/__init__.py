"""Core interfaces/abstractions.

Why:
- Defines contracts (Protocol) implemented by concrete adapters.
- Inverts dependencies: the core depends on abstractions.
"""

from core.interfaces.portal import AutomationEngine, EngineFactory, PortalSession

__all__ = ["AutomationEngine", "EngineFactory", "PortalSession"]
