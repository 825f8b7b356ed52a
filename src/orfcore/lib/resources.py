"""
Resource and optional dependency management.
"""
from functools import cached_property, lru_cache
from importlib import import_module
from numpy.random import default_rng
from typing import Callable


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class OrfcoreWarning(Warning): pass


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Manages global resources like random number generators and optional dependencies.
    """
    @cached_property
    def rng(self):
        """Returns a default numpy random number generator."""
        return default_rng()

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        """Checks if a python package is installed."""
        try:
            import_module(module_name)
            return True
        except ImportError: return False


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(signature_or_function=None, **options) -> Callable:
    """
    Conditional Numba JIT decorator.

    If 'numba' is installed (checked via RESOURCES), this applies `numba.jit`
    with the provided arguments. Otherwise, it returns the original function unmodified,
    ignoring any compilation options.

    Examples:
        >>> @jit  # Bare usage
        ... def func(): ...

        >>> @jit(nopython=True, cache=True)  # Configured usage
        ... def func(): ...
    """
    # 1. Fallback: Numba not installed
    if not RESOURCES.has_module('numba'):
        if callable(signature_or_function): return signature_or_function  # Handle bare @jit
        def passthrough(func: Callable) -> Callable: return func  # Handle @jit(...)
        return passthrough
    # 2. Apply Numba
    from numba import jit as real_jit
    if callable(signature_or_function): return real_jit(signature_or_function)  # Handle bare @jit
    return real_jit(signature_or_function, **options)  # Handle @jit(...)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
