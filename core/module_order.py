"""
Module Order Resolver — Orders a set of modules so prerequisites come first.

Depth-first topological sort over config.modules.MODULE_DEPENDENCIES with a
three-state visit marker. Only prerequisites that are themselves in the
requested set constrain the order. Meeting a module that is still being
visited means the static dependency map has a cycle, which raises
CircularDependencyError.
"""

from typing import Dict, Iterable, List, Optional

from config import Module, MODULE_DEPENDENCIES

from .errors import CircularDependencyError

_UNVISITED, _VISITING, _DONE = 0, 1, 2


class ModuleOrderResolver:
    """Sorts and checks module sets against a module dependency map."""

    def __init__(self, dependencies: Optional[Dict[Module, List[Module]]] = None):
        self.dependencies = dependencies if dependencies is not None else MODULE_DEPENDENCIES

    def order(self, modules: Iterable[Module]) -> List[Module]:
        """Return the modules ordered so every module follows its in-set prerequisites.

        Duplicates are dropped; the relative order of unconstrained modules
        follows the input order.

        Raises:
            CircularDependencyError: If the dependency map contains a cycle.
        """
        requested: List[Module] = []
        for module in modules:
            module = Module(module)
            if module not in requested:
                requested.append(module)
        wanted = set(requested)

        state = {m: _UNVISITED for m in requested}
        result: List[Module] = []

        def visit(module: Module) -> None:
            if state[module] == _VISITING:
                raise CircularDependencyError(module.value)
            if state[module] == _DONE:
                return
            state[module] = _VISITING
            for dep in self.dependencies.get(module, []):
                if dep in wanted:
                    visit(dep)
            state[module] = _DONE
            result.append(module)

        for module in requested:
            visit(module)
        return result


def order_modules(modules: Iterable[Module]) -> List[Module]:
    return ModuleOrderResolver().order(modules)
