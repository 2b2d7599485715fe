"""
Reconciliacao de variantes: compara o conjunto existente (por cor) com o
conjunto submetido e decide quais fotos sao preservadas, quais precisam de
upload e quais ficam orfas e devem ser apagadas apos o commit.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable, Protocol, Sequence

from aslam_catalog.storage import MediaRef


@dataclass(frozen=True)
class VariantDraft:
    color: str
    price_adjustment: Decimal = Decimal("0")
    is_sale: bool = False
    photo: bytes | None = None


class ExistingVariant(Protocol):
    color: str
    photo_url: str | None
    photo_id: str | None


@dataclass(frozen=True)
class VariantSnapshot:
    color: str
    photo_url: str | None
    photo_id: str | None


@dataclass(frozen=True)
class ReconciledVariant:
    color: str
    price_adjustment: Decimal
    is_sale: bool
    photo_url: str | None = None
    photo_id: str | None = None


@dataclass
class VariantPlan:
    rows: list[ReconciledVariant] = field(default_factory=list)
    preserved_handles: set[str] = field(default_factory=set)
    uploaded_handles: list[str] = field(default_factory=list)
    orphan_handles: list[str] = field(default_factory=list)


def snapshot_variants(variants: Iterable[ExistingVariant]) -> list[VariantSnapshot]:
    return [VariantSnapshot(v.color, v.photo_url or None, v.photo_id or None) for v in variants]


def reconcile_variants(
    existing: Iterable[ExistingVariant],
    submitted: Sequence[VariantDraft],
    upload: Callable[[bytes], MediaRef],
) -> VariantPlan:
    existing_by_color = {v.color: v for v in existing if v.color}
    plan = VariantPlan()
    by_color: dict[str, ReconciledVariant] = {}

    for draft in submitted:
        color = (draft.color or "").strip()
        if not color:
            continue
        photo_url: str | None = None
        photo_id: str | None = None
        if draft.photo:
            ref = upload(draft.photo)
            photo_url, photo_id = ref.url, ref.handle
            plan.uploaded_handles.append(ref.handle)
        else:
            previous = existing_by_color.get(color)
            if previous is not None and previous.photo_id:
                photo_url, photo_id = previous.photo_url, previous.photo_id
        # cor repetida: a ultima ocorrencia vence, na posicao da primeira
        by_color[color] = ReconciledVariant(
            color=color,
            price_adjustment=Decimal(draft.price_adjustment or 0),
            is_sale=bool(draft.is_sale),
            photo_url=photo_url,
            photo_id=photo_id,
        )

    plan.rows = list(by_color.values())
    referenced = {row.photo_id for row in plan.rows if row.photo_id}
    previous_handles = [v.photo_id for v in existing_by_color.values() if v.photo_id]
    plan.preserved_handles = {handle for handle in previous_handles if handle in referenced}

    orphans: list[str] = []
    for handle in previous_handles + plan.uploaded_handles:
        if handle not in referenced and handle not in orphans:
            orphans.append(handle)
    plan.orphan_handles = orphans
    return plan
