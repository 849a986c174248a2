"""Synthetic pharmacy catalog for local development and demos.

Example:
    Build a small catalog programmatically:
        from medfeed.seed import generate_catalog
        categories, items = generate_catalog(num_items=200, seed=7)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from bson import ObjectId

# Default configuration constants
DEFAULT_NUM_ITEMS = 500
DEFAULT_DAYS_BACK = 120

CATEGORY_NAMES = [
    "Pain Relief",
    "Cold & Flu",
    "Vitamins & Supplements",
    "Skin Care",
    "Digestive Health",
    "Baby Care",
    "Diabetes Care",
    "First Aid",
]

COMPANIES = ["Cipla", "Sun Pharma", "Abbott", "GSK", "Pfizer", "Dr. Reddy's", "Mankind", "Himalaya"]
FORMULAS = ["Paracetamol", "Ibuprofen", "Cetirizine", "Omeprazole", "Vitamin C", "Zinc", "Metformin", "Aloe Vera"]
FORMS = ["Tablet", "Capsule", "Syrup", "Gel", "Cream", "Drops"]
STRENGTHS = ["50mg", "100mg", "250mg", "500mg", "650mg", "10ml", "100ml"]


def generate_categories(names: Optional[List[str]] = None) -> pd.DataFrame:
    """One row per category with a fresh ObjectId string."""
    names = names or CATEGORY_NAMES
    return pd.DataFrame({
        "_id": [str(ObjectId()) for _ in names],
        "name": names,
        "imageUrl": [f"https://cdn.example.com/categories/{i}.png" for i in range(len(names))],
    })


def generate_catalog(
    num_items: int = DEFAULT_NUM_ITEMS,
    seed: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Generate synthetic categories and items.

    Args:
        num_items: Number of items to create. Must be positive.
        seed: Seed for reproducible values (IDs are always fresh).
        now: Reference time for ``createdAt``/``updatedAt``. Defaults to
            the current UTC time.

    Returns:
        Tuple ``(categories, items)`` of DataFrames. Item prices are
        consistent: ``itemFinalPrice`` is the initial price minus the
        discount percentage, rounded to cents.

    Raises:
        ValueError: If ``num_items`` is not positive.
    """
    if num_items <= 0:
        raise ValueError("num_items must be positive")

    rng = np.random.default_rng(seed)
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    categories = generate_categories()

    formulas = rng.choice(FORMULAS, num_items)
    forms = rng.choice(FORMS, num_items)
    strengths = rng.choice(STRENGTHS, num_items)
    companies = rng.choice(COMPANIES, num_items)

    initial_prices = np.round(rng.uniform(20, 1500, num_items), 2)
    # Most items carry a small discount; a few are deep deals
    discounts = np.where(
        rng.random(num_items) < 0.15,
        rng.integers(21, 60, num_items),
        rng.integers(0, 21, num_items),
    )
    final_prices = np.round(initial_prices * (1 - discounts / 100), 2)
    ages = rng.integers(0, DEFAULT_DAYS_BACK * 86400, num_items)

    items = pd.DataFrame({
        "_id": [str(ObjectId()) for _ in range(num_items)],
        "itemName": [f"{f} {s} {form}" for f, s, form in zip(formulas, strengths, forms)],
        "code": [f"MED{i:05d}" for i in range(1, num_items + 1)],
        "itemCompany": companies,
        "formula": formulas,
        "itemCategory": rng.choice(categories["_id"].to_numpy(), num_items),
        "itemDescription": [f"{form} of {f} by {c}" for f, form, c in zip(formulas, forms, companies)],
        "itemImages": [[f"https://cdn.example.com/items/{i}.jpg"] for i in range(num_items)],
        "itemInitialPrice": initial_prices,
        "itemDiscount": discounts.astype(int),
        "itemFinalPrice": final_prices,
        "itemRatings": np.round(rng.uniform(0, 5, num_items), 1),
        "views": rng.poisson(40, num_items),
        "createdAt": [now - timedelta(seconds=int(a)) for a in ages],
    })
    items["updatedAt"] = items["createdAt"]

    return categories, items


def to_documents(df: pd.DataFrame, object_id_columns: Tuple[str, ...] = ("_id",)) -> List[Dict[str, Any]]:
    """Convert DataFrame rows to MongoDB documents.

    Numpy scalars become Python values and the named ID columns become
    ObjectIds.
    """
    documents = []
    for record in df.to_dict(orient="records"):
        doc: Dict[str, Any] = {}
        for key, value in record.items():
            if key in object_id_columns:
                value = ObjectId(value)
            elif isinstance(value, np.generic):
                value = value.item()
            elif isinstance(value, pd.Timestamp):
                value = value.to_pydatetime()
            doc[key] = value
        documents.append(doc)
    return documents
