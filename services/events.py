"""
Completion events raised by the round engine and consumed by the lifecycle controller.

Handlers run synchronously inside the publisher's transaction, so the
subscriber's writes commit or roll back together with the event source.
"""
import logging
from collections import defaultdict
from typing import Callable, Dict, List

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

CITY_FINISHED = "city_finished"


class CompletionEvents:
    """Менеджер підписок на події завершення"""

    def __init__(self):
        # {event_name: [handler1, handler2, ...]}
        self.handlers: Dict[str, List[Callable]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Callable):
        if handler not in self.handlers[event_name]:
            self.handlers[event_name].append(handler)

    def publish(self, event_name: str, db: Session, **payload) -> list:
        """Call every handler in subscription order and return their results"""
        handlers = list(self.handlers.get(event_name, []))
        if not handlers:
            logger.debug(f"No subscribers for {event_name}")
        return [handler(db, **payload) for handler in handlers]

    def city_finished(self, db: Session, competition_id: int, city_id: int) -> bool:
        """True when any subscriber completed the competition"""
        results = self.publish(CITY_FINISHED, db, competition_id=competition_id, city_id=city_id)
        return any(bool(result) for result in results)
