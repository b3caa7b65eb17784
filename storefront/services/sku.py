# storefront/services/sku.py
import random
import re


def _letters(val: str | None, n: int) -> str:
    cleaned = re.sub(r"[^A-Za-z]", "", val or "")
    return cleaned[:n].upper()


def size_code(value) -> str:
    """250 -> '250G', 1000 -> '1KG', 1500 -> '1.5KG'."""
    grams = int(value or 0)
    if grams >= 1000:
        kg = grams / 1000
        return f"{kg:g}KG"
    return f"{grams}G"


def generate_sku(product_name, category_name, size_display_name, type_name=None, beans_name=None, suffix=None) -> str:
    """Long form: PRD-CAT-250[-TY][-BN]-1234."""
    parts = [
        _letters(product_name, 3) or "PRD",
        _letters(category_name, 3) or "CAT",
        re.sub(r"\D", "", size_display_name or "") or "0",
    ]
    if type_name:
        parts.append(_letters(type_name, 2))
    if beans_name:
        parts.append(_letters(beans_name, 2))
    if suffix is None:
        suffix = random.randint(0, 9999)
    parts.append(f"{int(suffix):04d}")
    return "-".join(p for p in parts if p)


def inline_sku(product_sku, size_value, has_type: bool = False, has_beans: bool = False) -> str:
    """Short form used for variations created together with their product."""
    parts = [(product_sku or "").strip() or "PRD", size_code(size_value)]
    if has_type:
        parts.append("T")
    if has_beans:
        parts.append("B")
    return "-".join(parts)
