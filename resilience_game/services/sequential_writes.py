import logging
from typing import Awaitable, Callable, List, Sequence, Tuple

from resilience_game.errors import PartialFailureError

Write = Tuple[str, Callable[[], Awaitable[object]]]


async def run_sequentially(operation: str, writes: Sequence[Write]) -> List[str]:
    """Await each write in order and return the ids that were persisted.

    If the first write fails its storage error propagates unchanged. A failure
    after at least one successful write raises PartialFailureError chained to
    the storage error.
    """
    persisted: List[str] = []
    for doc_id, write in writes:
        try:
            await write()
        except Exception as e:
            if not persisted:
                raise
            logging.error(f"{operation} failed at {doc_id} after persisting {len(persisted)} document(s): {e}")
            raise PartialFailureError(operation, persisted, doc_id) from e
        persisted.append(doc_id)
    return persisted
