"""
Receipt carousel state for the day view.

`ReceiptCarousel` keeps the ordered receipts of one day, the focused
position, the visible window around it and the running day total. Receipts
are kept oldest first; a new receipt is appended and takes the focus.
`CarouselRegistry` holds one carousel per (user, day) between requests.
"""
import logging
from collections import OrderedDict
from decimal import Decimal
from typing import List, Optional, Tuple

from models.carousel import CarouselState, CarouselView
from models.receipt import Receipt
from utils.money import parse_amount, sum_amounts

logger = logging.getLogger(__name__)

WINDOW_SIZES = (1, 3)
WINDOW_MODES = ("leading", "centered")


class ReceiptCarousel:
    """Focus and window bookkeeping over the receipts of a single day."""

    def __init__(self, window_size: int = 3, mode: str = "centered"):
        if window_size not in WINDOW_SIZES:
            raise ValueError(f"Window size must be one of {WINDOW_SIZES}, got {window_size}.")
        if mode not in WINDOW_MODES:
            raise ValueError(f"Window mode must be one of {WINDOW_MODES}, got {mode!r}.")
        self.window_size = window_size
        self.mode = mode
        self._receipts: List[Receipt] = []
        self._focus: Optional[int] = None
        self._total = Decimal("0.00")
        self._loaded = False

    # --- Derived state ---

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def state(self) -> CarouselState:
        if not self._loaded:
            return CarouselState.UNLOADED
        return CarouselState.WINDOWED if self._receipts else CarouselState.EMPTY

    @property
    def receipts(self) -> List[Receipt]:
        return list(self._receipts)

    @property
    def focus_index(self) -> Optional[int]:
        return self._focus

    @property
    def total(self) -> Decimal:
        return self._total

    @property
    def can_prev(self) -> bool:
        return self._focus is not None and self._focus > 0

    @property
    def can_next(self) -> bool:
        return self._focus is not None and self._focus < len(self._receipts) - 1

    def window_bounds(self) -> Tuple[int, int]:
        """Half-open slice `[start, stop)` of the visible receipts."""
        if self._focus is None:
            return 0, 0
        if self.mode == "leading":
            start = self._focus
            stop = self._focus + self.window_size
        else:
            half = self.window_size // 2
            start = self._focus - half
            stop = self._focus + half + 1
        return max(start, 0), min(stop, len(self._receipts))

    def visible(self) -> List[Receipt]:
        start, stop = self.window_bounds()
        return self._receipts[start:stop]

    # --- Transitions ---

    def load(self, receipts: List[Receipt]) -> None:
        """Replaces the receipts wholesale, e.g. after a fetch."""
        self._receipts = list(receipts)
        self._total = sum_amounts(r.amount for r in self._receipts)
        self._focus = 0 if self._receipts else None
        self._loaded = True
        logger.debug(f"Carousel loaded with {len(self._receipts)} receipts, total {self._total}.")

    def add(self, receipt: Receipt) -> None:
        """Appends a newly stored receipt and moves the focus onto it."""
        if not self._loaded:
            logger.debug("Ignoring add on a carousel that was never loaded.")
            return
        self._receipts.append(receipt)
        self._total += parse_amount(receipt.amount)
        self._focus = len(self._receipts) - 1

    def remove(self, receipt_id: str) -> Optional[Receipt]:
        """
        Drops the receipt with `receipt_id` and returns it, or None when the
        carousel is not loaded or holds no such receipt. Removing a receipt
        before the focus keeps the same receipt focused; removing the focused
        one lets its successor (or the new last receipt) take its place.
        """
        if not self._loaded:
            return None
        index = next((i for i, r in enumerate(self._receipts) if r.id == receipt_id), None)
        if index is None:
            return None
        removed = self._receipts.pop(index)
        self._total -= parse_amount(removed.amount)
        if not self._receipts:
            self._focus = None
        elif self._focus is not None:
            if index < self._focus:
                self._focus -= 1
            self._focus = min(self._focus, len(self._receipts) - 1)
        return removed

    def focus_next(self) -> None:
        if self.can_next:
            self._focus += 1

    def focus_prev(self) -> None:
        if self.can_prev:
            self._focus -= 1

    def focus(self, index: int) -> None:
        """Jumps to `index`, clamped into the list."""
        if not self._receipts:
            return
        self._focus = min(max(index, 0), len(self._receipts) - 1)

    def snapshot(self) -> CarouselView:
        start, stop = self.window_bounds()
        return CarouselView(
            state=self.state,
            focus_index=self._focus,
            window_start=start,
            visible=self._receipts[start:stop],
            focused=self._receipts[self._focus] if self._focus is not None else None,
            can_prev=self.can_prev,
            can_next=self.can_next,
            count=len(self._receipts),
            total=self._total,
        )


class CarouselRegistry:
    """
    Keeps one carousel per (user id, date key), evicting the least recently
    used entry once `capacity` is reached.
    """

    def __init__(self, window_size: int = 3, mode: str = "centered", capacity: int = 256):
        if capacity < 1:
            raise ValueError("Carousel registry capacity must be at least 1.")
        # Fail fast on a bad window configuration
        ReceiptCarousel(window_size, mode)
        self.window_size = window_size
        self.mode = mode
        self.capacity = capacity
        self._carousels: "OrderedDict[Tuple[str, str], ReceiptCarousel]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._carousels)

    def get(self, user_id: str, day_key: str) -> Optional[ReceiptCarousel]:
        key = (user_id, day_key)
        carousel = self._carousels.get(key)
        if carousel is not None:
            self._carousels.move_to_end(key)
        return carousel

    def get_or_create(self, user_id: str, day_key: str) -> ReceiptCarousel:
        carousel = self.get(user_id, day_key)
        if carousel is None:
            carousel = ReceiptCarousel(self.window_size, self.mode)
            self._carousels[(user_id, day_key)] = carousel
            while len(self._carousels) > self.capacity:
                evicted, _ = self._carousels.popitem(last=False)
                logger.debug(f"Evicted carousel for {evicted}.")
        return carousel

    def discard_user(self, user_id: str) -> int:
        """Forgets every carousel of `user_id`; returns how many were dropped."""
        keys = [key for key in self._carousels if key[0] == user_id]
        for key in keys:
            del self._carousels[key]
        return len(keys)

    def clear(self) -> None:
        self._carousels.clear()
