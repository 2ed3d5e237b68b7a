"""
Category table and keyword classifier.

Expense and income categories are disjoint closed sets that share one
fallback key, LAINNYA ("other"). The ledger itself tolerates any string,
so entries written by older versions or by hand still aggregate under
their literal key.
"""

from dataclasses import dataclass, field
from typing import Optional

from dompet.models.ledger import TransactionKind


OTHER_CATEGORY = "LAINNYA"


@dataclass(frozen=True)
class CategoryInfo:
    key: str
    name: str
    icon: str
    keywords: tuple[str, ...] = field(default_factory=tuple)

    @property
    def display(self) -> str:
        return f"{self.icon} {self.name}"


EXPENSE_CATEGORIES: dict[str, CategoryInfo] = {
    info.key: info
    for info in (
        CategoryInfo(
            "MAKANAN", "Makanan & Minuman", "🍔",
            ("makan", "minum", "food", "restaurant", "cafe", "warung", "kopi"),
        ),
        CategoryInfo(
            "TRANSPORT", "Transportasi", "🚗",
            ("bensin", "parkir", "transport", "ojek", "grab", "gojek", "taxi", "tol"),
        ),
        CategoryInfo(
            "BELANJA", "Belanja", "🛒",
            ("belanja", "shopping", "beli", "indomaret", "alfamart", "supermarket"),
        ),
        CategoryInfo(
            "TAGIHAN", "Tagihan & Utilitas", "💳",
            (
                "listrik", "pdam", "pln", "internet", "wifi", "indihome", "tagihan",
                "bill", "pulsa", "paket data", "kuota", "telkomsel", "indosat",
                "smartfren", "axis",
            ),
        ),
        CategoryInfo(
            "HIBURAN", "Hiburan", "🎬",
            ("nonton", "cinema", "game", "hiburan", "entertainment", "netflix"),
        ),
        CategoryInfo(
            "KESEHATAN", "Kesehatan", "💊",
            ("obat", "dokter", "rumah sakit", "klinik", "apotek", "health"),
        ),
        CategoryInfo(
            "PENDIDIKAN", "Pendidikan", "📚",
            ("buku", "kursus", "sekolah", "kuliah", "education", "spp"),
        ),
        CategoryInfo(
            "PAKAIAN", "Pakaian", "👕",
            ("baju", "sepatu", "pakaian", "fashion", "clothes", "celana"),
        ),
        CategoryInfo(OTHER_CATEGORY, "Lainnya", "📦"),
    )
}

INCOME_CATEGORIES: dict[str, CategoryInfo] = {
    info.key: info
    for info in (
        CategoryInfo("GAJI", "Gaji", "💰", ("gaji", "salary", "payroll")),
        CategoryInfo("FREELANCE", "Freelance", "💻", ("freelance", "project", "proyek", "contract")),
        CategoryInfo("BISNIS", "Bisnis", "🏢", ("bisnis", "usaha", "business", "profit", "jualan")),
        CategoryInfo("INVESTASI", "Investasi", "📈", ("dividen", "saham", "investment", "reksadana")),
        CategoryInfo("HADIAH", "Hadiah", "🎁", ("hadiah", "gift", "bonus", "thr", "angpao")),
        CategoryInfo(OTHER_CATEGORY, "Lainnya", "💵"),
    )
}


def categories_for(kind: TransactionKind) -> dict[str, CategoryInfo]:
    return EXPENSE_CATEGORIES if kind == TransactionKind.EXPENSE else INCOME_CATEGORIES


def is_known_category(category: str, kind: TransactionKind) -> bool:
    return category in categories_for(kind)


def classify(text: str, kind: TransactionKind) -> str:
    """
    Pick a category key for free text by keyword match.

    The first category (in table order) with a matching keyword wins.
    Falls back to LAINNYA when nothing matches.
    """
    lowered = text.lower()
    for key, info in categories_for(kind).items():
        if any(keyword in lowered for keyword in info.keywords):
            return key
    return OTHER_CATEGORY


def get_category_info(category: str, kind: Optional[TransactionKind] = None) -> Optional[CategoryInfo]:
    """Look up a category in the given table, or in both when kind is None."""
    if kind is not None:
        return categories_for(kind).get(category)
    return EXPENSE_CATEGORIES.get(category) or INCOME_CATEGORIES.get(category)


def category_display(category: str, kind: Optional[TransactionKind] = None) -> str:
    """Icon and name for a category; unknown keys are shown as-is."""
    info = get_category_info(category, kind)
    return info.display if info else f"📦 {category}"
