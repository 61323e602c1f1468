from enum import Enum


class Supplier(str, Enum):
    """Upstream apparel suppliers. Values are what gets persisted."""
    SANMAR = "SANMAR"
    SSACTIVEWEAR = "SSACTIVEWEAR"


# primary supplier selection order for product bundles
SUPPLIER_PRIORITY: tuple[Supplier, ...] = (Supplier.SANMAR, Supplier.SSACTIVEWEAR)


def parse_supplier(value: "str | Supplier") -> Supplier:
    if isinstance(value, Supplier):
        return value
    return Supplier(value.strip().upper())
