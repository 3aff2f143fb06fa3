# app/services/item_policy.py
from typing import Mapping, Optional

from app.models.license_model import BindingMode
from app.utils.errors import UnknownItem


class ItemPolicyResolver:
    """Maps a configured marketplace item id to its binding mode."""

    def __init__(self, items: Optional[Mapping] = None):
        if items is None:
            from config import ENVATO_ITEMS
            items = ENVATO_ITEMS
        self._items = {str(k): v for k, v in items.items()}

    def resolve(self, item_id) -> BindingMode:
        key = str(item_id).strip()
        if key not in self._items:
            raise UnknownItem(f"Item {key} is not in the item mapping")
        try:
            return BindingMode(self._items[key])
        except ValueError:
            raise UnknownItem(f"Item {key} is mapped to unknown binding mode {self._items[key]!r}")
