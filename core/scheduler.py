"""
延遲任務排程

用 asyncio task 在 N 秒後執行回呼（目前只用在斷線後的踢除計時）

計時器不會被主動取消：觸發時由回呼自己重新檢查最新狀態
"""
import asyncio
from typing import Any, Awaitable, Callable, Set
import logging

logger = logging.getLogger(__name__)


class TaskScheduler:
    """背景延遲任務，只在關機時統一取消"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, delay: float, callback: Callable[..., Awaitable[Any]], *args: Any) -> asyncio.Task:
        """
        排程 delay 秒後執行 callback(*args)

        參數：
            delay: 延遲秒數
            callback: async 函式
            *args: 傳給 callback 的參數（只傳 ID 之類的值，不傳狀態物件）

        返回：
            asyncio.Task
        """
        task = asyncio.create_task(self._run(delay, callback, *args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, delay: float, callback: Callable[..., Awaitable[Any]], *args: Any) -> None:
        await asyncio.sleep(max(0.0, delay))
        try:
            await callback(*args)
        except Exception as e:
            logger.error(f"Scheduled task {getattr(callback, '__name__', callback)} failed: {e}", exc_info=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """取消所有尚未觸發的任務（應用關閉時呼叫）"""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(tasks)} pending scheduled tasks")
