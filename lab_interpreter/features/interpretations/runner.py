# Interpretations Feature - Background runner

import asyncio
from typing import Awaitable, Callable, Dict, Set

from lab_interpreter.core.logging import logger


class PipelineRunner:
    """
    Runs pipelines as asyncio tasks, at most one per record.

    Holds a strong reference to each task until it finishes so it is not
    garbage collected mid-run.
    """

    def __init__(self, run: Callable[[str], Awaitable[None]]):
        self._run = run
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def active_ids(self) -> Set[str]:
        return set(self._tasks)

    def is_active(self, record_id: str) -> bool:
        return record_id in self._tasks

    def launch(self, record_id: str) -> bool:
        """Start a run; False if one is already active for this record."""
        if self.is_active(record_id):
            logger.warning(f"Interpretation {record_id} is already running, launch refused")
            return False

        task = asyncio.create_task(self._run(record_id), name=f"interpretation-{record_id}")
        self._tasks[record_id] = task
        task.add_done_callback(lambda t: self._on_done(record_id, t))
        logger.info(f"Launched interpretation {record_id} ({len(self._tasks)} active)")
        return True

    def _on_done(self, record_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(record_id) is task:
            del self._tasks[record_id]

        if task.cancelled():
            logger.warning(f"Interpretation {record_id} was cancelled")
        elif task.exception() is not None:
            logger.error(f"Interpretation {record_id} crashed: {task.exception()!r}")
        else:
            logger.debug(f"Interpretation {record_id} finished")

    async def wait_finished(self, record_id: str, timeout: float) -> bool:
        """Wait up to timeout seconds for the record's run to end; True once it has."""
        task = self._tasks.get(record_id)
        if task is None:
            return True

        await asyncio.wait({task}, timeout=timeout)
        if not task.done():
            return False
        if self._tasks.get(record_id) is task:
            del self._tasks[record_id]
        return True

    async def shutdown(self, timeout: float) -> None:
        """Wait up to timeout seconds for active runs, then cancel the rest."""
        tasks = list(self._tasks.values())
        if not tasks:
            return

        logger.info(f"Waiting up to {timeout}s for {len(tasks)} interpretation(s) to finish")
        _, pending = await asyncio.wait(tasks, timeout=timeout)

        if pending:
            logger.warning(f"Cancelling {len(pending)} interpretation(s) still running at shutdown")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
