"""Inspector interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from starlette.responses import Response

from .context import InspectionContext


class Inspector(ABC):
    """
    One stage of the inspection pipeline.

    ``inspect`` returns ``None`` to let the request continue, returns a
    response to end the run, or raises a ``PipelineRejection``.
    """

    name: str = "inspector"

    @abstractmethod
    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        ...

    async def on_fault(self, ctx: InspectionContext, exc: BaseException) -> Optional[Response]:
        """Called when a later stage or the downstream app raises."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
