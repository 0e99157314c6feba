# estimators/__init__.py
from .gas_estimator import GasEstimator, GasProfile, OperationCost, estimate_deployment_gas

__all__ = ['GasEstimator', 'GasProfile', 'OperationCost', 'estimate_deployment_gas']
