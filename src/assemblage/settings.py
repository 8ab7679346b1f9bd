"""Engine settings for a :class:`~assemblage.container.Container`."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

__all__ = ["ContainerSettings", "UnusedPolicy"]

UnusedPolicy = Literal["ignore", "warn", "error"]


class ContainerSettings(BaseModel):
    """How strictly a container treats configuration it cannot use.

    Attributes:
        strict: Unknown ``<component>.<key>`` overrides are errors when True
            and warnings when False.
        unused_properties: What to do with keys nothing consumed during a
            load. Derived from ``strict`` when unset.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    strict: bool = True
    unused_properties: Optional[UnusedPolicy] = None

    @property
    def unused_policy(self) -> UnusedPolicy:
        if self.unused_properties is not None:
            return self.unused_properties
        return "ignore" if self.strict else "warn"
