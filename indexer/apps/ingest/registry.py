from typing import Dict, Optional, Tuple, Type
from dataclasses import dataclass

from indexer.apps.ingest.base import EventHandler


@dataclass
class HandlerMeta:
    cls: Type[EventHandler]
    contract: str
    event: str
    description: str


_handler_classes: Dict[Tuple[str, str], HandlerMeta] = {}


def handles(contract: str, event: str, *, description: str = ""):
    """Decorator: @handles('Builders', 'UserDeposited')"""

    def _decorator(cls: Type[EventHandler]) -> Type[EventHandler]:
        key = (contract, event)
        existing = _handler_classes.get(key)
        if existing and existing.cls is not cls:
            raise ValueError(
                f"{contract}:{event} already handled by {existing.cls.__name__}"
            )
        cls.contract = contract
        cls.event = event
        _handler_classes[key] = HandlerMeta(
            cls=cls, contract=contract, event=event, description=description
        )
        return cls

    return _decorator


def get_handler_meta(contract: str, event: str) -> Optional[HandlerMeta]:
    return _handler_classes.get((contract, event))


def all_handler_metas() -> Dict[Tuple[str, str], HandlerMeta]:
    return dict(_handler_classes)
