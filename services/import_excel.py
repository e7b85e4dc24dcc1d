"""Parse Excel file and return product data for import."""

from pathlib import Path
from typing import Optional

import pandas as pd

from utils.logger import logger


COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "title": ("title", "name", "product", "product name"),
    "category": ("category", "group"),
    "subcategory": ("subcategory", "sub category", "sub-category"),
    "price": ("price", "cost"),
    "description": ("description", "details"),
    "stock": ("stock", "quantity", "qty"),
    "sku": ("sku", "article", "code"),
    "weight": ("weight", "weight kg", "weight (kg)"),
    "image": ("image", "image url", "photo"),
    "is_active": ("is_active", "active", "enabled"),
}

REQUIRED_COLUMNS = ("title", "category", "price")


def _cell(row: pd.Series, column: Optional[str]) -> str:
    if column is None or pd.isna(row[column]):
        return ""
    value = str(row[column]).strip()
    return "" if value.lower() == "nan" else value


def parse_products_excel(file_path: Path) -> tuple[list[dict], list[str]]:
    """
    Parse Excel file with product data.

    Expected columns (case-insensitive, flexible naming):
        - title / name (required)
        - category (required)
        - price (required, non-negative number)
        - subcategory, description, stock, sku, weight, image, active (optional)

    Returns:
        Tuple of (items_list, errors_list)
    """
    errors: list[str] = []
    items: list[dict] = []

    try:
        df = pd.read_excel(file_path, engine="openpyxl")
    except Exception as e:
        return [], [f"Failed to read file: {e}"]

    if df.empty:
        return [], ["File is empty, nothing to import."]

    col_map: dict[str, Optional[str]] = {field: None for field in COLUMN_ALIASES}
    for col in df.columns:
        lower = str(col).strip().lower()
        for field, aliases in COLUMN_ALIASES.items():
            if lower in aliases:
                col_map[field] = col
                break

    missing = [field for field in REQUIRED_COLUMNS if col_map[field] is None]
    if missing:
        return [], [f"Missing required column(s): {', '.join(missing)}."]

    for idx, row in df.iterrows():
        row_num = idx + 2  # Excel rows start at 1, header is row 1

        title = _cell(row, col_map["title"])
        category = _cell(row, col_map["category"])
        if not title:
            errors.append(f"Row {row_num}: empty title, skipped.")
            continue
        if not category:
            errors.append(f"Row {row_num}: empty category, skipped.")
            continue

        try:
            price = float(_cell(row, col_map["price"]))
        except ValueError:
            errors.append(f"Row {row_num}: invalid price, skipped.")
            continue
        if price < 0:
            errors.append(f"Row {row_num}: negative price, skipped.")
            continue

        stock = 0
        raw_stock = _cell(row, col_map["stock"])
        if raw_stock:
            try:
                stock = max(int(float(raw_stock)), 0)
            except ValueError:
                errors.append(f"Row {row_num}: invalid stock '{raw_stock}', using 0.")

        weight = None
        raw_weight = _cell(row, col_map["weight"])
        if raw_weight:
            try:
                weight = float(raw_weight)
            except ValueError:
                errors.append(f"Row {row_num}: invalid weight '{raw_weight}', ignored.")

        is_active = True
        raw_active = _cell(row, col_map["is_active"]).lower()
        if raw_active:
            is_active = raw_active in ("yes", "true", "1", "+")

        items.append({
            "title": title,
            "category": category,
            "subcategory": _cell(row, col_map["subcategory"]) or None,
            "price": price,
            "description": _cell(row, col_map["description"]),
            "stock": stock,
            "sku": _cell(row, col_map["sku"]).upper() or None,
            "weight": weight,
            "image": _cell(row, col_map["image"]) or None,
            "is_active": is_active,
        })

    logger.info(f"Parsed Excel: {len(items)} items, {len(errors)} errors")
    return items, errors
