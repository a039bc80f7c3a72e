from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Record:
    """One Bitable row; fields are keyed by field name as Feishu returns them."""

    id: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "Record":
        return cls(
            id=item.get("record_id") or item.get("id") or "",
            fields=dict(item.get("fields") or {}),
        )


@dataclass
class MaterialPrice:
    price: float = 0.0
    unit: str = ""


@dataclass
class LedgerState:
    """Everything the front-end renders; replaced wholesale on reload."""

    purchases: List[Record] = field(default_factory=list)
    formulas: List[Record] = field(default_factory=list)
    sales: List[Record] = field(default_factory=list)
    material_prices: Dict[str, MaterialPrice] = field(default_factory=dict)
    loading: bool = False
    last_error: Optional[str] = None
