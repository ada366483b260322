"""Batch Orchestrator - runs async workers over items in rate-limited windows."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, Sequence

from reelforge.core.config import Settings
from reelforge.models.schemas import BatchOutcome, BatchTask, FailurePolicy, OutcomeState
from reelforge.utils.error_handler import format_error_message, user_message


class BatchOrchestrator:
    """Runs a worker over items in windows of concurrent calls."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize batch orchestrator.

        Args:
            settings: Application settings
            logger: Logger instance
            sleep: Awaitable sleep in seconds (defaults to asyncio.sleep)
        """
        self.settings = settings
        self.logger = logger
        self.sleep = sleep or asyncio.sleep

    async def run(
        self,
        items: Sequence[Any],
        worker: Callable[[Any], Awaitable[Any]],
        batch_size: int,
        inter_window_delay_ms: int = 0,
        failure_policy: FailurePolicy = FailurePolicy.COLLECT_ALL,
        labels: Optional[list[str]] = None,
        scene_numbers: Optional[list[int]] = None,
    ) -> list[BatchTask]:
        """
        Run worker over items, batch_size at a time.

        Every worker in a window is started together and the window settles
        before the next one starts. The delay is only applied between windows.
        Under STOP_ON_FIRST_FAILURE no window starts after one that had a
        failure; items never started stay pending.

        Args:
            items: Inputs, one per task
            worker: Async callable applied to each item
            batch_size: Maximum concurrent workers per window
            inter_window_delay_ms: Delay between windows
            failure_policy: COLLECT_ALL or STOP_ON_FIRST_FAILURE
            labels: Optional task names for logging
            scene_numbers: Optional scene numbers recorded on each task

        Returns:
            One BatchTask per item, in input order
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        tasks = [
            BatchTask(
                index=i,
                scene_number=scene_numbers[i] if scene_numbers and i < len(scene_numbers) else None,
                input=item,
            )
            for i, item in enumerate(items)
        ]
        if not tasks:
            return tasks

        windows = [tasks[i : i + batch_size] for i in range(0, len(tasks), batch_size)]
        self.logger.info(
            f"Batch of {len(tasks)} items: {len(windows)} windows of up to {batch_size} "
            f"({failure_policy.value})"
        )
        start_time = time.time()

        for window_number, window in enumerate(windows, start=1):
            if window_number > 1 and inter_window_delay_ms > 0:
                self.logger.debug(f"Waiting {inter_window_delay_ms}ms before window {window_number}")
                await self.sleep(inter_window_delay_ms / 1000)

            await asyncio.gather(*(self._run_task(task, worker, labels, len(tasks)) for task in window))

            window_failed = any(task.failed for task in window)
            if window_failed and failure_policy == FailurePolicy.STOP_ON_FIRST_FAILURE:
                skipped = len(tasks) - window[-1].index - 1
                if skipped:
                    self.logger.warning(
                        f"Stopping after window {window_number}/{len(windows)}: "
                        f"{skipped} items not started"
                    )
                break

        successful = sum(1 for task in tasks if task.succeeded)
        self.logger.info(
            f"Batch complete: {successful}/{len(tasks)} successful in {time.time() - start_time:.2f}s"
        )
        return tasks

    async def _run_task(
        self,
        task: BatchTask,
        worker: Callable[[Any], Awaitable[Any]],
        labels: Optional[list[str]],
        total: int,
    ) -> None:
        task_name = labels[task.index] if labels and task.index < len(labels) else f"task_{task.index + 1}"
        started = time.time()
        try:
            result = await worker(task.input)
        except Exception as e:
            self.logger.warning(
                format_error_message(
                    task_name, e, {"item": f"{task.index + 1}/{total}", "elapsed": f"{time.time() - started:.2f}s"}
                )
            )
            task.settle(BatchOutcome(state=OutcomeState.FAILURE, reason=user_message(e), error=e))
            return

        self.logger.debug(f"✅ {task_name} completed ({task.index + 1}/{total}) in {time.time() - started:.2f}s")
        task.settle(BatchOutcome(state=OutcomeState.SUCCESS, payload=result))
