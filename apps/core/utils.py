# apps/core/utils.py

from typing import Dict, Iterable, List, Optional, Set

DEFAULT_STATUS_OPTIONS = [
    {'id': 'todo', 'label': 'To Do', 'color': '#6B7280', 'position': 0, 'isTerminal': False},
    {'id': 'in-progress', 'label': 'In Progress', 'color': '#3B82F6', 'position': 1, 'isTerminal': False},
    {'id': 'review', 'label': 'Review', 'color': '#F59E0B', 'position': 2, 'isTerminal': False},
    {'id': 'complete', 'label': 'Complete', 'color': '#10B981', 'position': 3, 'isTerminal': True},
]

FALLBACK_STATUS = 'todo'

TERMINAL_STATUS_IDS = ('complete', 'done')
TERMINAL_LABEL_WORDS = ('complete', 'done')


def sorted_options(options: Optional[Iterable[Dict]]) -> List[Dict]:
    """Status/section options ordered by their position"""
    return sorted(options or [], key=lambda option: option.get('position', 0))


def default_status_id(status_options: Optional[Iterable[Dict]]) -> str:
    """
    Status where new tasks land: the first option by position
    Boards without options fall back to 'todo'
    """
    options = sorted_options(status_options)
    if options:
        return options[0]['id']
    return FALLBACK_STATUS


def looks_terminal(option: Dict) -> bool:
    """Legacy heuristic for options stored before the isTerminal flag existed"""
    label = (option.get('label') or '').lower()
    return (
        option.get('id') in TERMINAL_STATUS_IDS
        or any(word in label for word in TERMINAL_LABEL_WORDS)
    )


def is_terminal_option(option: Dict) -> bool:
    """
    An option marks completion when it says so explicitly
    The explicit flag always wins over the label heuristic
    """
    if 'isTerminal' in option:
        return bool(option['isTerminal'])
    return looks_terminal(option)


def terminal_status_ids(status_options: Optional[Iterable[Dict]]) -> Set[str]:
    return {option['id'] for option in status_options or [] if is_terminal_option(option)}


def with_terminal_flags(status_options: Optional[Iterable[Dict]]) -> List[Dict]:
    """
    Returns a copy of the options with isTerminal filled in everywhere
    Used when options are captured into templates or new boards
    """
    return [
        {**option, 'isTerminal': is_terminal_option(option)}
        for option in sorted_options(status_options)
    ]
