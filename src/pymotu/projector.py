"""Projection of the flat datastore onto input/output banks.

The projector is seeded once from a full cache snapshot, then follows
the update bus.  Seeding and live updates go through the same
:meth:`ModelProjector.apply_entry` routine, so replaying the cache in any
order rebuilds the same banks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType

from pymotu.exceptions import MotuDecodeError, MotuPathParseError, MotuUpdatesLaggedError
from pymotu.models.bank import Bank, BankDirection, parse_bank_path
from pymotu.models.request import Request
from pymotu.models.value import Value
from pymotu.state.bus import Subscription
from pymotu.state.events import Update

_logger = logging.getLogger(__name__)


class ModelProjector:
    """Owns the bank/channel model and keeps it in step with the cache.

    Only the projector mutates banks.  Readers get read-only views of the
    bank maps.
    """

    def __init__(self) -> None:
        self._banks: dict[BankDirection, dict[int, Bank]] = {direction: {} for direction in BankDirection}
        self.applied = 0
        self.skipped = 0

    @property
    def input_banks(self) -> Mapping[int, Bank]:
        return MappingProxyType(self._banks[BankDirection.INPUT])

    @property
    def output_banks(self) -> Mapping[int, Bank]:
        return MappingProxyType(self._banks[BankDirection.OUTPUT])

    def banks(self, direction: BankDirection) -> Mapping[int, Bank]:
        return MappingProxyType(self._banks[direction])

    def bank(self, direction: BankDirection, index: int) -> Bank | None:
        return self._banks[direction].get(index)

    def apply_entry(self, path: str, value: Value) -> bool:
        """Route one datastore entry into the model.

        Returns ``False`` when *path* is outside the bank tree.  Malformed
        paths and values raise :class:`MotuPathParseError` /
        :class:`MotuDecodeError`.
        """
        key = parse_bank_path(path)
        if key is None:
            return False
        banks = self._banks[key.direction]
        bank = banks.get(key.index)
        if bank is None:
            bank = Bank(index=key.index, direction=key.direction)
            banks[key.index] = bank
        bank.update(key.segments, value)
        return True

    def _apply_isolated(self, path: str, value: Value) -> None:
        try:
            if self.apply_entry(path, value):
                self.applied += 1
        except (MotuPathParseError, MotuDecodeError) as exc:
            self.skipped += 1
            _logger.warning("Skipping %s in bank model: %s", path, exc)

    def seed(self, entries: Iterable[tuple[str, Value]]) -> None:
        """Build the model from a full cache snapshot.

        One bad entry never stops the others from being applied.
        """
        for path, value in entries:
            self._apply_isolated(path, value)
        _logger.debug(
            "Seeded %d input and %d output banks",
            len(self._banks[BankDirection.INPUT]),
            len(self._banks[BankDirection.OUTPUT]),
        )

    def apply(self, update: Update) -> None:
        """Apply a live update from the bus."""
        self._apply_isolated(update.path, update.value)

    async def consume(
        self,
        subscription: Subscription,
        resync: Callable[[], Iterable[tuple[str, Value]]] | None = None,
    ) -> None:
        """Apply updates from *subscription* until the bus closes.

        When updates were dropped for this subscription, *resync* (usually
        the cache's ``snapshot``) is replayed to catch up.
        """
        while True:
            try:
                async for update in subscription:
                    self.apply(update)
            except MotuUpdatesLaggedError as exc:
                _logger.warning("Bank model lagged behind the update bus: %s", exc)
                if resync is not None:
                    self.seed(resync())
                continue
            return

    # ------------------------------------------------------------------
    # Request builders
    # ------------------------------------------------------------------

    def _require_bank(self, direction: BankDirection, index: int) -> Bank | None:
        bank = self._banks[direction].get(index)
        if bank is None:
            _logger.debug("No %s bank %d", direction.name.lower(), index)
        return bank

    def bank_name_request(self, direction: BankDirection, bank: int, name: str) -> Request | None:
        target = self._require_bank(direction, bank)
        return target.set_name(name) if target is not None else None

    def channel_name_request(self, direction: BankDirection, bank: int, channel: int, name: str) -> Request | None:
        target = self._require_bank(direction, bank)
        return target.set_channel_name(channel, name) if target is not None else None

    def channel_trim_request(self, direction: BankDirection, bank: int, channel: int, trim: int) -> Request | None:
        """Request setting a channel's trim; ``None`` until its trim kind is known."""
        target = self._require_bank(direction, bank)
        return target.set_channel_trim(channel, trim) if target is not None else None
