"""
stockbook/reference.py
----------------------
Reference data needed while recording a document: numbering prefixes,
sequence limits and tax settings.

Built explicitly per request with ReferenceData.load() and passed into the
recorder. Nothing is cached at module level; tax settings are queried at
the moment they are needed.
"""
from typing import Iterable, Mapping

from flask import current_app

from stockbook.constants import RecordStatus
from stockbook.sequences import SequenceAllocator, claim


class ReferenceData:

    def __init__(self, prefixes: Mapping[str, str], id_width: int = 4,
                 max_attempts: int = 25, retry_backoff: float = 0.0):
        self.prefixes      = dict(prefixes)
        self.id_width      = id_width
        self.max_attempts  = max_attempts
        self.retry_backoff = retry_backoff

    @classmethod
    def load(cls, config=None) -> 'ReferenceData':
        """Config defaults overlaid with the prefix_settings table."""
        from stockbook.settings.models import PrefixSetting

        config = config if config is not None else current_app.config
        prefixes = dict(config['SERIES_PREFIXES'])
        for row in PrefixSetting.query.all():
            prefixes[row.series] = row.prefix
        return cls(
            prefixes,
            id_width=config['ID_WIDTH'],
            max_attempts=config['ID_MAX_ATTEMPTS'],
            retry_backoff=config['ID_RETRY_BACKOFF'],
        )

    # ── Numbering ─────────────────────────────────────────────────

    def prefix_for(self, series: str) -> str:
        try:
            return self.prefixes[series]
        except KeyError:
            raise ValueError(f"No prefix configured for series {series!r}")

    def allocator(self, series: str) -> SequenceAllocator:
        return SequenceAllocator(
            series,
            self.prefix_for(series),
            max_attempts=self.max_attempts,
            width=self.id_width,
        )

    def claim(self, series: str, persist):
        """Mint the next id in `series` and persist with it (see sequences.claim)."""
        return claim(self.allocator(series), persist, backoff=self.retry_backoff)

    # ── Tax ───────────────────────────────────────────────────────

    def tax_settings(self, tax_ids: Iterable[int]) -> dict:
        """Active tax settings among `tax_ids`, keyed by tax_id."""
        from stockbook.inventory.models import TaxSetting

        ids = {t for t in tax_ids if t is not None}
        if not ids:
            return {}
        rows = TaxSetting.query.filter(
            TaxSetting.tax_id.in_(ids),
            TaxSetting.status == RecordStatus.ACTIVE,
        ).all()
        return {row.tax_id: row for row in rows}
