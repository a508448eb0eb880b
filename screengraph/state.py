"""User state consulted by edge predicates and mutated by side-effects."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any


@dataclass
class UserState:
    """Mutable record of what the test believes about the app.

    A fresh instance is created for every navigator session. Predicates read
    it, side-effects and on-enter callbacks write to it.

    Subclass it to declare typed fields:

        @dataclass
        class ShopState(UserState):
            cart_items: int = 0

    Anything not declared as a field lives in ``data``.
    """

    # Screen the navigator starts at when no explicit start is given
    initial_screen_state: str | None = None

    # Generic key-value bag
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a declared field or a ``data`` entry.

        Args:
            key: Field or data key
            default: Returned when the key is unknown

        Returns:
            The stored value
        """
        if key in self._field_names():
            return getattr(self, key)
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Write a declared field or a ``data`` entry."""
        if key in self._field_names():
            setattr(self, key, value)
        else:
            self.data[key] = value

    def remember(self, **kwargs: Any) -> None:
        """Update several values at once.

        Example:
            state.remember(num_items=3, logged_in=True)
        """
        for key, value in kwargs.items():
            self.set(key, value)

    def _field_names(self) -> set[str]:
        return {f.name for f in fields(self)} - {"data"}
