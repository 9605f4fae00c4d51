"""
Process-wide resources: CPU accounting and optional dependency checks.
"""
from functools import cached_property, lru_cache
from importlib import import_module
import os
from typing import Callable


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Manages global resources like the worker count and optional dependencies.
    """
    @cached_property
    def available_cpus(self) -> int:
        """Returns the number of CPUs usable by this process (at least 1)."""
        try: n = os.process_cpu_count()
        except AttributeError:
            try: n = len(os.sched_getaffinity(0))
            except AttributeError: n = os.cpu_count()
        return n or 1

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
    if not RESOURCES.has_module('numba'):
        if callable(signature_or_function): return signature_or_function  # Handle bare @jit
        def passthrough(func: Callable) -> Callable: return func  # Handle @jit(...)
        return passthrough
    from numba import jit as real_jit
    if callable(signature_or_function): return real_jit(signature_or_function)  # Handle bare @jit
    return real_jit(signature_or_function, **options)  # Handle @jit(...)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
