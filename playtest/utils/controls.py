"""
Controls mapping - key aliases and high-level game control actions
"""
import logging
import string
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CONTROL_ACTIONS = (
    "MoveUp",
    "MoveDown",
    "MoveLeft",
    "MoveRight",
    "MoveHorizontal",
    "MoveVertical",
    "Move2D",
    "Jump",
    "Action",
    "Confirm",
    "Cancel",
    "Pause",
    "Start",
)

KEY_ALIASES: Dict[str, str] = {
    "Up": "ArrowUp",
    "Down": "ArrowDown",
    "Left": "ArrowLeft",
    "Right": "ArrowRight",
    "space": "Space",
    "enter": "Enter",
    "escape": "Escape",
    "esc": "Escape",
    "Esc": "Escape",
}

VALID_KEY_NAMES = {
    "ArrowUp", "ArrowDown", "ArrowLeft", "ArrowRight",
    "Space", "Enter", "Escape", "Tab", "Backspace",
    "Shift", "Control", "Alt", "Meta",
    *(f"Key{c}" for c in string.ascii_uppercase),
    *(f"Digit{d}" for d in range(10)),
    *(f"F{n}" for n in range(1, 13)),
}


def resolve_key_name(key: str) -> str:
    """
    Resolve a key name to its canonical browser name.

    "w" and "W" become "KeyW", "5" becomes "Digit5", aliases like "Left"
    map to "ArrowLeft". Unrecognised names are returned unchanged.
    """
    if key in KEY_ALIASES:
        return KEY_ALIASES[key]

    if key in VALID_KEY_NAMES:
        return key

    if len(key) == 1 and key.isalpha():
        return f"Key{key.upper()}"

    if len(key) == 1 and key.isdigit():
        return f"Digit{key}"

    logger.warning(f'Unrecognized key name: "{key}" - using as-is')
    return key


def resolve_action(action: str, controls: Optional[Dict[str, List[str]]] = None) -> Optional[List[str]]:
    """Resolve a control action ("MoveUp") to its mapped keys, or None."""
    if not controls:
        return None
    keys = controls.get(action)
    if keys:
        return [resolve_key_name(k) for k in keys]
    return None


def resolve_key(key: str, controls: Optional[Dict[str, List[str]]] = None) -> str:
    """Resolve a step key: control action first (primary key), then key name."""
    keys = resolve_action(key, controls)
    if keys:
        return keys[0]
    return resolve_key_name(key)


def validate_controls(controls: Dict[str, List[str]]) -> List[str]:
    """Return warnings for empty mappings and unsupported key names."""
    warnings = []
    for action, keys in controls.items():
        if not keys:
            warnings.append(f'Control "{action}" has no keys mapped')
            continue
        for key in keys:
            resolved = KEY_ALIASES.get(key, key)
            if len(resolved) == 1 and resolved.isalnum():
                continue
            if resolved not in VALID_KEY_NAMES:
                warnings.append(
                    f'Key "{key}" for control "{action}" may not be supported'
                )
    return warnings
