"""
Canonical style registry.

Owns canonical style numbers and the (supplier, supplier_part_id) links pointing at
them. A supplier part belongs to exactly one canonical style at a time; linking it
again with a different style number moves the link (last writer wins) and is logged
and audited as a re-link.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from apparel_catalog.models import CanonicalStyle, SupplierLinkAudit, SupplierProductLink
from apparel_catalog.services.canonical_mapping import CanonicalMappingTable
from apparel_catalog.suppliers import Supplier, parse_supplier

logger = logging.getLogger(__name__)

_NUMERIC_STYLE = re.compile(r"^[A-Z]?\d{4,}$")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_WHITESPACE = re.compile(r"\s+")


def normalize_code(value: str) -> str:
    return (value or "").strip().upper()


class CanonicalStyleRegistry:
    def __init__(self, session: Session, mapping: Optional[CanonicalMappingTable] = None):
        self.session = session
        self.mapping = mapping
        self._fallback_warned: Set[str] = set()

    # ------------------------------------------------------------------ guessing

    def guess_style_number(self, supplier: Supplier | str, supplier_part_id: str, brand: Optional[str] = None) -> str:
        """
        Best-effort canonical style number for a supplier part without an explicit mapping.
        Not guaranteed unique; later re-links are expected.
        """
        supplier = parse_supplier(supplier)
        part = normalize_code(supplier_part_id)

        if self.mapping is not None:
            mapped = self.mapping.find_supplier_style(supplier.value, part) or self.mapping.find_by_alias(part)
            if mapped:
                return mapped.canonical_sku

            warning_key = f"{supplier.value}:{part}"
            if warning_key not in self._fallback_warned:
                self._fallback_warned.add(warning_key)
                logger.warning(f"[CANONICAL] No mapping entry for {warning_key}; using heuristic style number")

        if _NUMERIC_STYLE.match(part):
            return re.sub(r"^[A-Z]", "", part)

        if brand and brand.strip():
            prefix = _WHITESPACE.sub("", brand.strip())[:3].upper()
            return f"{prefix}-{_NON_ALNUM.sub('', part) or part}"

        return part

    # ------------------------------------------------------------------ upserts

    def upsert_style(
        self,
        style_number: str,
        display_name: Optional[str] = None,
        brand: Optional[str] = None,
        default_name: Optional[str] = None,
    ) -> CanonicalStyle:
        """Create the style, or refresh its display fields when new values are given."""
        style_number = normalize_code(style_number)
        style = self.get_by_style_number(style_number)
        if style is None:
            style = CanonicalStyle(
                style_number=style_number,
                display_name=(display_name or default_name or style_number).strip(),
                brand=brand.strip() if brand else None,
            )
            self.session.add(style)
            self.session.flush()
            logger.info(f"[CANONICAL] Created canonical style {style_number}")
            return style

        if display_name and display_name.strip():
            style.display_name = display_name.strip()
        if brand and brand.strip():
            style.brand = brand.strip()
        return style

    def ensure_link(
        self,
        supplier: Supplier | str,
        supplier_part_id: str,
        style_number: Optional[str] = None,
        display_name: Optional[str] = None,
        brand: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[CanonicalStyle, SupplierProductLink]:
        """
        Idempotent upsert of the canonical style and the supplier link. Without a style
        number the guessed one is used. The caller owns the transaction.
        """
        supplier = parse_supplier(supplier)
        part = normalize_code(supplier_part_id)
        if not part:
            raise ValueError("supplier_part_id is required")

        target_number = normalize_code(style_number) if style_number else self.guess_style_number(supplier, part, brand)
        style = self.upsert_style(target_number, display_name, brand, default_name=part)

        link = self.get_link(supplier, part)
        if link is None:
            link = SupplierProductLink(
                canonical_style_id=style.id,
                supplier=supplier.value,
                supplier_part_id=part,
                link_metadata=metadata,
            )
            self.session.add(link)
            self.session.flush()
            return style, link

        if link.canonical_style_id != style.id:
            self.relink(link, style, reason="ensure_link")
        if metadata is not None:
            link.link_metadata = metadata
        self.session.flush()
        return style, link

    def relink(self, link: SupplierProductLink, style: CanonicalStyle, reason: Optional[str] = None) -> None:
        """Point an existing supplier link at a different canonical style, with an audit row."""
        previous = self.session.get(CanonicalStyle, link.canonical_style_id)
        previous_number = previous.style_number if previous else None
        if previous is not None and previous.id == style.id:
            return

        logger.warning(
            f"[CANONICAL] Re-linking {link.supplier}:{link.supplier_part_id} "
            f"from {previous_number} to {style.style_number}"
        )
        link.canonical_style_id = style.id
        self.session.add(
            SupplierLinkAudit(
                supplier=link.supplier,
                supplier_part_id=link.supplier_part_id,
                from_style_number=previous_number,
                to_style_number=style.style_number,
                reason=reason,
            )
        )
        self.session.flush()
        # keep relationship collections in sync with the moved row
        self.session.expire(link, ["canonical_style"])
        if previous is not None:
            self.session.expire(previous, ["supplier_links"])
        self.session.expire(style, ["supplier_links"])

    # ------------------------------------------------------------------ lookups

    def get_by_style_number(self, style_number: str) -> Optional[CanonicalStyle]:
        return self.session.scalars(
            select(CanonicalStyle).where(CanonicalStyle.style_number == normalize_code(style_number))
        ).first()

    def get_link(self, supplier: Supplier | str, supplier_part_id: str) -> Optional[SupplierProductLink]:
        supplier = parse_supplier(supplier)
        return self.session.scalars(
            select(SupplierProductLink).where(
                SupplierProductLink.supplier == supplier.value,
                SupplierProductLink.supplier_part_id == normalize_code(supplier_part_id),
            )
        ).first()

    def get_by_supplier_part(self, supplier: Supplier | str, supplier_part_id: str) -> Optional[CanonicalStyle]:
        link = self.get_link(supplier, supplier_part_id)
        return link.canonical_style if link else None

    def get_by_any_supplier_part(self, supplier_part_id: str) -> Optional[CanonicalStyle]:
        return self.session.scalars(
            select(CanonicalStyle)
            .join(SupplierProductLink, SupplierProductLink.canonical_style_id == CanonicalStyle.id)
            .where(SupplierProductLink.supplier_part_id == normalize_code(supplier_part_id))
            .order_by(SupplierProductLink.supplier)
        ).first()

    def resolve(self, identifier: str) -> Optional[CanonicalStyle]:
        """Any supplier part first, then the style number itself."""
        normalized = normalize_code(identifier)
        if not normalized:
            return None
        return self.get_by_any_supplier_part(normalized) or self.get_by_style_number(normalized)

    def list_links_for_style(self, canonical_style_id) -> List[SupplierProductLink]:
        return list(
            self.session.scalars(
                select(SupplierProductLink)
                .where(SupplierProductLink.canonical_style_id == canonical_style_id)
                .order_by(SupplierProductLink.supplier_part_id)
            )
        )

    def count_styles(self) -> int:
        return self.session.scalar(select(func.count()).select_from(CanonicalStyle)) or 0

    def count_links(self) -> int:
        return self.session.scalar(select(func.count()).select_from(SupplierProductLink)) or 0
