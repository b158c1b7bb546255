"""
Slice operations — cut a resource out of a snapshot and put it back.
"""

from __future__ import annotations

from dataclasses import replace

from cartsync._types import COUPONS, SHIPPING, ResourceKey, line_key_of
from cartsync.snapshot._types import CartLineItem, CartSnapshot, Slice


def extract(snapshot: CartSnapshot, resource: ResourceKey) -> Slice:
    """Current state of a resource (plus totals and count)."""
    key = line_key_of(resource)
    if key is not None:
        for position, item in enumerate(snapshot.items):
            if item.key == key:
                return Slice(
                    resource=resource,
                    totals=snapshot.totals,
                    count=snapshot.count,
                    line=item,
                    position=position,
                )
        return Slice(resource=resource, totals=snapshot.totals, count=snapshot.count)

    if resource == COUPONS:
        return Slice(
            resource=resource,
            totals=snapshot.totals,
            count=snapshot.count,
            coupons=snapshot.applied_coupons,
        )

    if resource == SHIPPING:
        return Slice(
            resource=resource,
            totals=snapshot.totals,
            count=snapshot.count,
            shipping_methods=snapshot.shipping_methods,
        )

    # Resources with no state of their own (add-to-cart guards)
    return Slice(resource=resource, totals=snapshot.totals, count=snapshot.count)


def restore(
    snapshot: CartSnapshot,
    piece: Slice,
    *,
    include_totals: bool = True,
) -> CartSnapshot:
    """
    Write a slice back into a snapshot.

    A line already present is replaced in place (keeps visual order);
    an absent line is inserted at its recorded position.

    include_totals=False writes only the resource's own state.
    Used when absorbing server data that owns the totals.
    """
    updated = snapshot
    key = line_key_of(piece.resource)

    if key is not None:
        items = list(snapshot.items)
        index = next((i for i, item in enumerate(items) if item.key == key), None)
        if piece.line is None:
            if index is not None:
                del items[index]
        elif index is not None:
            items[index] = piece.line
        else:
            position = piece.position if piece.position is not None else len(items)
            items.insert(min(position, len(items)), piece.line)
        updated = replace(updated, items=tuple(items))
    elif piece.resource == COUPONS:
        updated = replace(updated, applied_coupons=piece.coupons)
    elif piece.resource == SHIPPING:
        updated = replace(updated, shipping_methods=piece.shipping_methods)

    if include_totals:
        updated = replace(updated, totals=piece.totals, count=piece.count)
    return updated


def sort_by_keys(
    items: tuple[CartLineItem, ...],
    keys: tuple[str, ...],
) -> tuple[CartLineItem, ...]:
    """
    Order items by a key list.

    Keys not in the list keep their relative order and go last.
    """
    rank = {key: i for i, key in enumerate(keys)}
    return tuple(sorted(items, key=lambda item: rank.get(item.key, len(rank))))


__all__ = ("extract", "restore", "sort_by_keys")
