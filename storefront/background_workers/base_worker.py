import asyncio
from typing import Any, Dict, Optional
from storefront import logger

SENTINEL = None  # queue sentinel


class BaseWorker():
    """Fixed pool of asyncio tasks pulling jobs off a bounded queue."""

    def __init__(self, workers_count:int=2,max_queue_size: int = 1000):
        self.queue: asyncio.Queue[Optional[Dict[str, Any]]] = asyncio.Queue(maxsize=max_queue_size)
        self.worker_loops:Dict[str, asyncio.Task] = {}
        self.workers_count:int=workers_count
        self.processed = 0

    async def __call__(self):
        if not self.worker_loops:
            for i in range(self.workers_count):
                cur_worker_name=f"Worker:{i+1}"
                self.worker_loops[cur_worker_name]=asyncio.create_task(self._worker_loop(cur_worker_name))
                logger.info("[%s] started", cur_worker_name)

    def submit(self, task: Dict[str, Any]) -> bool:
        """Enqueue without waiting. False when the queue is full."""
        try:
            self.queue.put_nowait(task)
        except asyncio.QueueFull:
            return False
        return True

    async def stop(self):
        """Send one sentinel per worker."""
        for _ in range(self.workers_count):
            await self.queue.put(SENTINEL)

    async def shutdown(self, *, drain_first: bool = True, drain_timeout: float = 30.0, wait_timeout: float = 30.0):
        """Graceful stop: optionally wait for the queue to drain, then send sentinels and await the loops."""
        if not self.worker_loops:
            return

        if drain_first:
            try:
                await asyncio.wait_for(self.queue.join(), timeout=drain_timeout)
                logger.debug("worker queue drained")
            except asyncio.TimeoutError:
                logger.warning("timeout waiting for worker queue to drain", extra={"pending": self.queue.qsize()})

        await self.stop()

        for name, task in self.worker_loops.items():
            try:
                await asyncio.wait_for(task, timeout=wait_timeout)
            except asyncio.TimeoutError:
                # wait_for already cancelled the task
                logger.warning("[%s] worker did not finish in time; cancelled", name)
        self.worker_loops = {}

    async def _worker_loop(self,cur_worker_name):
        """Calls `task_executor()` for each non-sentinel task."""
        logger.info("[%s] loop running", cur_worker_name)
        while True:
            qitem = await self.queue.get()
            try:
                if qitem is SENTINEL:
                    logger.info("[%s] sentinel received; exiting loop", cur_worker_name)
                    break

                try:
                    await self.task_executor(qitem,cur_worker_name)
                    self.processed += 1
                except Exception:
                    logger.exception("[%s] handler threw for task event=%s", cur_worker_name, qitem.get("event"))
            finally:
                # always mark done for each get()
                self.queue.task_done()

        logger.info("[%s] exiting", cur_worker_name)

    async def task_executor(self, task: Dict[str, Any], wname):
        raise NotImplementedError


class NotificationWorker(BaseWorker):

    def __init__(self, notifier, workers_count: int = 2, max_queue_size: int = 1000):
        super().__init__(workers_count=workers_count, max_queue_size=max_queue_size)
        self.notifier = notifier

    async def task_executor(self, task: Dict[str, Any], wname):
        if task["event"] == "order_placed":
            await self.notifier.notify_order_placed(task["data"]["order"], task["data"]["items"])
        else:
            logger.warning("[%s] unknown event %s dropped", wname, task["event"])
