from typing import Dict, Type

from core.exceptions import ValidationError
from services.pos.base import PosTransformer
from services.pos.square import SquareTransformer
from services.pos.toast import ToastTransformer

TRANSFORMERS: Dict[str, Type[PosTransformer]] = {
    SquareTransformer.provider: SquareTransformer,
    ToastTransformer.provider: ToastTransformer,
}


def register_transformer(cls: Type[PosTransformer]) -> Type[PosTransformer]:
    TRANSFORMERS[cls.provider] = cls
    return cls


def get_transformer(provider: str) -> PosTransformer:
    cls = TRANSFORMERS.get((provider or "").lower())
    if cls is None:
        raise ValidationError(
            f"Unsupported POS provider: {provider}. Supported: {', '.join(sorted(TRANSFORMERS))}",
            field="provider",
        )
    return cls()


def supported_providers() -> list:
    return sorted(TRANSFORMERS)
