"""
Registry for teckboard CLI actions.

Resource modules under teckboard.api decorate their coroutine functions and
the CLI picks them up; no CLI code lives next to the resources.

Usage:
    from teckboard.registry import action, all_action

    @action()
    async def get_board(client, *, board_id: str) -> Board:
        '''Get a board.'''
        ...

    @action("rename")  # Custom action name
    async def rename_board(client, *, board_id: str, name: str) -> Board:
        '''Rename a board.'''
        ...

    @all_action
    async def all(client) -> int:
        '''Run the read-only checks of the category.'''
        ...
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

F = TypeVar('F', bound=Callable)


@dataclass(frozen=True)
class Action:
    """A registered action."""

    category: str
    """Module the action was declared in (teckboard.api.boards -> boards)."""

    name: str
    """Name the action is invoked by on the command line."""

    func: Callable


# {category: {action name: Action}}
_actions: dict[str, dict[str, Action]] = {}

# {category: coroutine function run by `<category> all`}
_all_funcs: dict[str, Callable] = {}


def _category_of(func: Callable) -> str:
    return func.__module__.rsplit('.', 1)[-1]


def derive_name(func_name: str, category: str) -> str:
    """
    Strip the category from a function name.

    Both the plural and singular forms are tried as prefix or suffix:
    `get_board` in `boards` becomes `get`, `list_boards` becomes `list`.
    """
    stems = {category, category.removesuffix('s')}
    for stem in sorted(stems, key=len, reverse=True):
        if func_name.startswith(f'{stem}_'):
            return func_name[len(stem) + 1:]
        if func_name.endswith(f'_{stem}'):
            return func_name[:-len(stem) - 1]
    return func_name


def action(name: str | None = None):
    """
    Register a coroutine function as a CLI action.

    The first argument must be `client`, the CLI injects it. Keyword-only
    arguments become CLI options through defopt.

    Args:
        name: Action name. Defaults to the function name without the category.

    Example:
        @action()
        async def get_board(client, *, board_id: str) -> Board:
            ...

        # CLI: teckboard boards get --board-id abc123
    """
    def decorator(func: F) -> F:
        category = _category_of(func)
        registered = Action(category, name or derive_name(func.__name__, category), func)
        _actions.setdefault(category, {})[registered.name] = registered
        return func
    return decorator


def all_action(func: F) -> F:
    """
    Register the function `<category> all` runs.

    It takes only `client` and returns an exit code (0 for success).
    """
    _all_funcs[_category_of(func)] = func
    return func


def get_actions(category: str) -> dict[str, Callable]:
    """Get all registered action functions for a category."""
    return {name: entry.func for name, entry in _actions.get(category, {}).items()}


def get_all_func(category: str) -> Callable | None:
    """Get the 'all' function for a category."""
    return _all_funcs.get(category)


def get_categories() -> list[str]:
    """Get all registered categories, sorted."""
    return sorted(set(_actions) | set(_all_funcs))


def list_actions(category: str) -> list[str]:
    """List all available action names for a category, 'all' first."""
    names = sorted(_actions.get(category, {}))
    if category in _all_funcs:
        names.insert(0, 'all')
    return names
