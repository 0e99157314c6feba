"""
stylus-forge: compile, diagnose and gas-profile Stylus smart contracts.
"""
from .service import compile_contract, compile_contract_sync

__all__ = ['compile_contract', 'compile_contract_sync']
