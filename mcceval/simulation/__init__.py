from mcceval.simulation.runner import (
    SimulationLogEntry,
    SimulationMode,
    SimulationRequest,
    SimulationResult,
    SimulatorConfig,
    SimulatorRunner,
)

__all__ = [
    "SimulationLogEntry",
    "SimulationMode",
    "SimulationRequest",
    "SimulationResult",
    "SimulatorConfig",
    "SimulatorRunner",
]
