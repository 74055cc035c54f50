"""Integrity checks for effective-dated histories.

The resolver in ``fee_service`` quietly tolerates overlaps and gaps; this
module is where they get reported. Nothing here mutates records or blocks a
computation: results are reports whose ``findings()`` feed the audit.

Checks:
- Fee history (units and creditors): overlapping ranges are errors, gaps
  (months that fall back to the default rate) are warnings
- Extra charges: inverted ranges, non-positive amounts, overlaps between
  records of the same charge (same description and scope)
- Owner periods: overlaps, open-ended owner followed by another, several
  current owners, gaps, units without (current) owners
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Mapping, NamedTuple, Sequence

from condo.services.findings import Finding, error, warning
from condo.services.locale_service import format_amount
from condo.services.months import next_month, previous_month
from condo.services.records import EntityId, ExtraChargeRecord, OwnerPeriod, RateRecord

FEE_HISTORY_CHECK = "fee-history"
EXTRA_CHARGE_CHECK = "extra-charges"
OWNER_PERIOD_CHECK = "owner-periods"


class RangeOverlap(NamedTuple):
    """Two consecutive records whose ranges intersect."""

    entity: Hashable
    current: Any
    following: Any

    @property
    def open_ended(self) -> bool:
        return self.current.effective_to is None


class RangeGap(NamedTuple):
    """Months between two consecutive records that no record covers."""

    entity: Hashable
    start: str
    end: str


def _label(record: Any) -> str:
    end = record.effective_to or "ongoing"
    return f"{record.effective_from}..{end} ({format_amount(record.amount)})"


def scan_ranges(entity: Hashable, records: Iterable[Any]) -> tuple[list[RangeOverlap], list[RangeGap]]:
    """
    Detect overlaps and gaps between consecutive effective-dated records.

    Records are sorted by effective_from (stable). An open-ended record
    followed by another one always overlaps it.
    """
    ordered = sorted(records, key=lambda r: r.effective_from)
    overlaps: list[RangeOverlap] = []
    gaps: list[RangeGap] = []
    for curr, following in zip(ordered, ordered[1:]):
        if curr.effective_to is None or curr.effective_to >= following.effective_from:
            overlaps.append(RangeOverlap(entity, curr, following))
            continue
        first_uncovered = next_month(curr.effective_to)
        if first_uncovered < following.effective_from:
            gaps.append(RangeGap(entity, first_uncovered, previous_month(following.effective_from)))
    return overlaps, gaps


@dataclass(frozen=True)
class HistoryReport:
    """Overlaps and gaps found across one or more fee histories."""

    overlaps: tuple[RangeOverlap, ...] = ()
    gaps: tuple[RangeGap, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not self.overlaps and not self.gaps

    def findings(self, labels: Mapping[Hashable, str] | None = None) -> list[Finding]:
        labels = labels or {}
        result = []
        for overlap in self.overlaps:
            name = labels.get(overlap.entity, str(overlap.entity))
            if overlap.open_ended:
                detail = "ongoing record is followed by"
            else:
                detail = "overlaps with"
            result.append(
                error(
                    FEE_HISTORY_CHECK,
                    f"{name}: fee record {_label(overlap.current)} {detail} "
                    f"{_label(overlap.following)}",
                    subject=name,
                )
            )
        for gap in self.gaps:
            name = labels.get(gap.entity, str(gap.entity))
            result.append(
                warning(
                    FEE_HISTORY_CHECK,
                    f"{name}: gap in fee history from {gap.start} to {gap.end} "
                    "(default fee applies during gap)",
                    subject=name,
                )
            )
        return result


def validate_history(records_by_entity: Mapping[Hashable, Sequence[RateRecord]]) -> HistoryReport:
    """Run overlap and gap detection for every entity's fee history."""
    overlaps: list[RangeOverlap] = []
    gaps: list[RangeGap] = []
    for entity, records in records_by_entity.items():
        entity_overlaps, entity_gaps = scan_ranges(entity, records)
        overlaps.extend(entity_overlaps)
        gaps.extend(entity_gaps)
    return HistoryReport(overlaps=tuple(overlaps), gaps=tuple(gaps))


@dataclass(frozen=True)
class ExtraChargeReport:
    """Problems found in the extra-charge table."""

    invalid_ranges: tuple[ExtraChargeRecord, ...] = ()
    non_positive: tuple[ExtraChargeRecord, ...] = ()
    overlaps: tuple[RangeOverlap, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not (self.invalid_ranges or self.non_positive or self.overlaps)

    def findings(self, unit_labels: Mapping[EntityId, str] | None = None) -> list[Finding]:
        unit_labels = unit_labels or {}

        def scope(charge: ExtraChargeRecord) -> str:
            if charge.is_global:
                return "Global"
            return f"Unit {unit_labels.get(charge.unit_id, charge.unit_id)}"

        result = []
        for charge in self.invalid_ranges:
            result.append(
                error(
                    EXTRA_CHARGE_CHECK,
                    f'{scope(charge)} - "{charge.description}": effective_from '
                    f"({charge.effective_from}) is after effective_to ({charge.effective_to})",
                    subject=scope(charge),
                )
            )
        for charge in self.non_positive:
            result.append(
                warning(
                    EXTRA_CHARGE_CHECK,
                    f'{scope(charge)} - "{charge.description}": amount is '
                    f"{format_amount(charge.amount)} (non-positive)",
                    subject=scope(charge),
                )
            )
        for overlap in self.overlaps:
            result.append(
                warning(
                    EXTRA_CHARGE_CHECK,
                    f'Overlapping extra charges for "{overlap.current.description}" '
                    f"({_label(overlap.current)} and {_label(overlap.following)})",
                    subject=scope(overlap.current),
                )
            )
        return result


def validate_extra_charges(charges: Iterable[ExtraChargeRecord]) -> ExtraChargeReport:
    """Check ranges and amounts; overlaps only count within the same charge."""
    charges = list(charges)
    invalid = tuple(
        c for c in charges if c.effective_to is not None and c.effective_from > c.effective_to
    )
    non_positive = tuple(c for c in charges if c.amount <= 0)

    groups: dict[tuple, list[ExtraChargeRecord]] = defaultdict(list)
    for charge in charges:
        groups[charge.scope_key].append(charge)

    overlaps: list[RangeOverlap] = []
    for key, group in groups.items():
        if len(group) > 1:
            group_overlaps, _ = scan_ranges(key, group)
            overlaps.extend(group_overlaps)

    return ExtraChargeReport(invalid_ranges=invalid, non_positive=non_positive, overlaps=tuple(overlaps))


def _start_key(owner: OwnerPeriod) -> str:
    return owner.start_month or "0000-00"


@dataclass(frozen=True)
class OwnerPeriodReport:
    """Owner-history problems for one unit."""

    unit: str
    owner_count: int
    overlaps: tuple[tuple[OwnerPeriod, OwnerPeriod], ...] = ()
    gaps: tuple[RangeGap, ...] = ()
    current_owners: tuple[OwnerPeriod, ...] = ()

    @property
    def is_clean(self) -> bool:
        return (
            self.owner_count > 0
            and len(self.current_owners) == 1
            and not self.overlaps
            and not self.gaps
        )

    def findings(self) -> list[Finding]:
        unit = self.unit
        if self.owner_count == 0:
            return [warning(OWNER_PERIOD_CHECK, f"Unit {unit} has NO owners", subject=unit)]

        result = []
        if not self.current_owners:
            result.append(
                warning(
                    OWNER_PERIOD_CHECK,
                    f"Unit {unit} has owners but none without end month (no current owner)",
                    subject=unit,
                )
            )
        for curr, following in self.overlaps:
            if curr.end_month is None:
                message = (
                    f'Unit {unit}: owner "{curr.name}" has no end month but owner '
                    f'"{following.name}" starts at {following.start_month or "beginning"}'
                )
            else:
                message = (
                    f'Unit {unit}: owner "{curr.name}" (ends {curr.end_month}) overlaps with '
                    f'owner "{following.name}" (starts {following.start_month or "beginning"})'
                )
            result.append(error(OWNER_PERIOD_CHECK, message, subject=unit))
        if len(self.current_owners) > 1:
            names = ", ".join(f'"{o.name}"' for o in self.current_owners)
            result.append(
                error(
                    OWNER_PERIOD_CHECK,
                    f"Unit {unit}: {len(self.current_owners)} current owners: {names}",
                    subject=unit,
                )
            )
        for gap in self.gaps:
            result.append(
                warning(
                    OWNER_PERIOD_CHECK,
                    f"Unit {unit}: no owner from {gap.start} to {gap.end}",
                    subject=unit,
                )
            )
        return result


def validate_owner_periods(unit: str, owners: Sequence[OwnerPeriod]) -> OwnerPeriodReport:
    """Owner periods must not overlap, should be contiguous, with one current owner."""
    ordered = sorted(owners, key=_start_key)
    overlaps = []
    gaps = []
    for curr, following in zip(ordered, ordered[1:]):
        following_start = _start_key(following)
        if curr.end_month is None or curr.end_month >= following_start:
            overlaps.append((curr, following))
        elif following.start_month and next_month(curr.end_month) < following.start_month:
            gaps.append(
                RangeGap(unit, next_month(curr.end_month), previous_month(following.start_month))
            )
    return OwnerPeriodReport(
        unit=unit,
        owner_count=len(owners),
        overlaps=tuple(overlaps),
        gaps=tuple(gaps),
        current_owners=tuple(o for o in owners if o.is_current),
    )


def owner_for_month(owners: Iterable[OwnerPeriod], month: str) -> OwnerPeriod | None:
    """Owner whose period contains month (first match), or None."""
    return next((o for o in owners if o.covers(month)), None)


def current_owner(owners: Iterable[OwnerPeriod]) -> OwnerPeriod | None:
    return next((o for o in owners if o.is_current), None)
