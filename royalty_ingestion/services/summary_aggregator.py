"""
SummaryAggregator -- quarterly rollups recomputed from committed records.

Contract:
    ``summarize()`` is a pure reduction over one artist-quarter's committed
    records.  ``aggregate()`` re-reads every affected quarter from the store,
    summarizes it and upserts the result on (artist, year, quarter).

Invariants:
    - Summaries are derived only from committed records, never from parsed
      rows, so a partially failed run summarizes exactly what is durable.
    - Records are reduced in natural-key order and breakdowns are sorted by
      key: identical record sets give byte-identical canonical JSON and the
      same checksum.
    - Lines on excluded platforms (advance payments) stay out of every
      total and breakdown.
    - Each track also gets its own rollup (top platform and territory,
      net per use, distributions) with shares relative to the track's net.

Failure modes:
    - A quarter that cannot be read or saved becomes a warning string; the
      other quarters are still summarized.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from royalty_config.schema import AggregationSettings
from royalty_kernel.domain.currency import CurrencyRegistry
from royalty_kernel.domain.records import BreakdownEntry, QuarterlySummary, RoyaltyRecord, TrackSummary
from royalty_kernel.exceptions import StoreError
from royalty_kernel.logging_config import get_logger
from royalty_kernel.services.royalty_store import RoyaltyStore
from royalty_kernel.utils.hashing import hash_payload

logger = get_logger("ingestion.summary")


def _quantum(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def _breakdown(
    records: Sequence[RoyaltyRecord],
    key: Callable[[RoyaltyRecord], str],
    total_net: Decimal,
    share_places: int,
    money_quantum: Decimal,
) -> tuple[BreakdownEntry, ...]:
    buckets: dict[str, list[RoyaltyRecord]] = defaultdict(list)
    for record in records:
        buckets[key(record)].append(record)

    share_quantum = _quantum(share_places)
    entries = []
    for name in sorted(buckets):
        items = buckets[name]
        net = sum((r.net.amount for r in items), Decimal(0)).quantize(money_quantum)
        share = (net / total_net) if total_net else Decimal(0)
        entries.append(
            BreakdownEntry(
                key=name,
                gross=sum((r.gross.amount for r in items), Decimal(0)).quantize(money_quantum),
                net=net,
                usage=sum(r.usage_count for r in items),
                record_count=len(items),
                share=share.quantize(share_quantum, rounding=ROUND_HALF_UP),
            )
        )
    return tuple(entries)


def _top(entries: Sequence[BreakdownEntry]) -> str | None:
    """Highest net; ties go to the alphabetically first key."""
    if not entries:
        return None
    return min(entries, key=lambda e: (-e.net, e.key)).key


def _track_key(record: RoyaltyRecord) -> str:
    return str(record.track_id) if record.track_id is not None else record.track_title


def _track_summaries(
    records: Sequence[RoyaltyRecord],
    share_places: int,
    money_quantum: Decimal,
) -> tuple[TrackSummary, ...]:
    """Per-track rollups; `records` must already be in natural-key order."""
    buckets: dict[str, list[RoyaltyRecord]] = defaultdict(list)
    for record in records:
        buckets[_track_key(record)].append(record)

    summaries = []
    for key in sorted(buckets):
        items = buckets[key]
        net = sum((r.net.amount for r in items), Decimal(0)).quantize(money_quantum)
        usage = sum(r.usage_count for r in items)
        avg = (net / usage) if usage else Decimal(0)

        def breakdown(by: Callable[[RoyaltyRecord], str]) -> tuple[BreakdownEntry, ...]:
            return _breakdown(items, by, net, share_places, money_quantum)

        by_territory = breakdown(lambda r: r.territory)
        top_territory = _top(by_territory)
        by_platform = breakdown(lambda r: r.platform)
        summaries.append(
            TrackSummary(
                key=key,
                title=items[0].track_title,
                gross=sum((r.gross.amount for r in items), Decimal(0)).quantize(money_quantum),
                net=net,
                usage=usage,
                record_count=len(items),
                avg_net_per_use=avg.quantize(_quantum(share_places), rounding=ROUND_HALF_UP),
                top_platform=_top(by_platform),
                top_territory=top_territory,
                highest_territory_net=next(
                    (e.net for e in by_territory if e.key == top_territory), Decimal(0).quantize(money_quantum)
                ),
                by_platform=by_platform,
                by_territory=by_territory,
                by_month=breakdown(lambda r: r.month),
            )
        )
    return tuple(summaries)


def summarize(
    artist_id: UUID,
    year: int,
    quarter: int,
    records: Iterable[RoyaltyRecord],
    currency: str,
    settings: AggregationSettings | None = None,
) -> QuarterlySummary:
    """Reduce one artist-quarter's committed records to a checksummed summary."""
    settings = settings or AggregationSettings()
    excluded = set(settings.excluded_platforms)
    included = sorted(
        (r for r in records if r.platform not in excluded),
        key=lambda r: r.natural_key,
    )
    if included:
        currency = included[0].gross.currency.code

    money_quantum = _quantum(CurrencyRegistry.get_decimal_places(currency))
    share_places = settings.share_places
    total_gross = sum((r.gross.amount for r in included), Decimal(0)).quantize(money_quantum)
    total_net = sum((r.net.amount for r in included), Decimal(0)).quantize(money_quantum)
    total_usage = sum(r.usage_count for r in included)
    avg = (total_net / total_usage) if total_usage else Decimal(0)

    def breakdown(key: Callable[[RoyaltyRecord], str]) -> tuple[BreakdownEntry, ...]:
        return _breakdown(included, key, total_net, share_places, money_quantum)

    by_platform = breakdown(lambda r: r.platform)
    by_territory = breakdown(lambda r: r.territory)
    by_track = breakdown(_track_key)

    summary = QuarterlySummary(
        artist_id=artist_id,
        year=year,
        quarter=quarter,
        currency=currency,
        total_gross=total_gross,
        total_net=total_net,
        total_usage=total_usage,
        distinct_tracks=len(by_track),
        record_count=len(included),
        avg_net_per_use=avg.quantize(_quantum(share_places), rounding=ROUND_HALF_UP),
        top_platform=_top(by_platform),
        top_territory=_top(by_territory),
        by_platform=by_platform,
        by_territory=by_territory,
        by_month=breakdown(lambda r: r.month),
        by_track=by_track,
        tracks=_track_summaries(included, share_places, money_quantum),
    )
    return replace(summary, checksum=hash_payload(summary.to_payload()))


class SummaryAggregator:
    def __init__(
        self,
        store: RoyaltyStore,
        settings: AggregationSettings | None = None,
        currency: str = "USD",
    ):
        self._store = store
        self._settings = settings or AggregationSettings()
        self._currency = currency

    def aggregate(
        self, quarters: Iterable[tuple[UUID, int, int]]
    ) -> tuple[tuple[QuarterlySummary, ...], tuple[str, ...]]:
        """Recompute and save each quarter; returns (summaries, warnings)."""
        summaries: list[QuarterlySummary] = []
        warnings: list[str] = []
        for artist_id, year, quarter in sorted(quarters, key=lambda q: (str(q[0]), q[1], q[2])):
            period = f"{year}-Q{quarter}"
            try:
                records = self._store.committed_records(artist_id, year, quarter)
            except StoreError as exc:
                logger.warning("summary_read_failed", extra={"period": period, "error": str(exc)})
                warnings.append(f"summary {period}: could not read committed records: {exc}")
                continue

            summary = summarize(artist_id, year, quarter, records, self._currency, self._settings)
            summaries.append(summary)
            try:
                self._store.save_summary(summary)
            except StoreError as exc:
                logger.warning("summary_save_failed", extra={"period": period, "error": str(exc)})
                warnings.append(f"summary {period}: not saved: {exc}")
                continue
            logger.info(
                "summary_saved",
                extra={
                    "period": period,
                    "record_count": summary.record_count,
                    "total_net": summary.total_net,
                    "checksum": summary.checksum,
                },
            )
        return tuple(summaries), tuple(warnings)
