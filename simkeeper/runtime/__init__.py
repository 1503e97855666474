"""Runtime composition: persisted config, published state, and the service facade.

``SimulatorService`` is imported lazily so that low-level modules can use
``simkeeper.runtime.config`` without pulling in the whole engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import SimulatorService


def __getattr__(name: str):
    if name == "SimulatorService":
        from .service import SimulatorService as _SimulatorService

        return _SimulatorService
    raise AttributeError(name)


__all__ = ["SimulatorService"]
