"""OperandConfig Controller: merges CommonService tenant requests into the shared OperandConfig."""

__version__ = "0.1.0"
