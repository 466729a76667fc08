"""CenturyLink Cloud machine driver."""

from .config import Settings
from .driver import Driver
from .operations import MachineState
from .state import DriverState, ProvisioningStep

__all__ = ["Driver", "DriverState", "MachineState", "ProvisioningStep", "Settings"]
