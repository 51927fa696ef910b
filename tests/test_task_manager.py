"""Tests for the send-task lifecycle helper."""

from __future__ import annotations

import asyncio
import unittest

from melchat.task_manager import TaskManager


async def _sleep_forever(marker: list[str], label: str) -> None:
    try:
        await asyncio.sleep(9999)
    except asyncio.CancelledError:
        marker.append(label)
        raise


class TaskManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate named and anonymous task tracking."""

    async def test_cancel_nowait_requests_cancellation(self) -> None:
        tm = TaskManager()
        cancelled: list[str] = []
        task = asyncio.create_task(_sleep_forever(cancelled, "send"))
        tm.add(task, name="send")
        await asyncio.sleep(0)

        returned = tm.cancel_nowait("send")

        self.assertIs(returned, task)
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertEqual(cancelled, ["send"])
        self.assertIsNone(tm.cancel_nowait("send"))

    async def test_cancel_unknown_name_is_noop(self) -> None:
        self.assertIsNone(TaskManager().cancel_nowait("missing"))

    async def test_finished_named_task_forgets_itself(self) -> None:
        tm = TaskManager()

        async def _quick() -> str:
            return "done"

        task = asyncio.create_task(_quick())
        tm.add(task, name="send")
        await task
        await asyncio.sleep(0)
        self.assertIsNone(tm.cancel_nowait("send"))

    async def test_replaced_name_keeps_newest_task(self) -> None:
        tm = TaskManager()

        async def _quick() -> None:
            return None

        first = asyncio.create_task(_quick())
        second = asyncio.create_task(asyncio.sleep(0.01))
        tm.add(first, name="send")
        tm.add(second, name="send")
        await first
        await asyncio.sleep(0)
        self.assertIs(tm.cancel_nowait("send"), second)
        await asyncio.gather(second, return_exceptions=True)

    async def test_await_all_waits_for_tasks_added_while_waiting(self) -> None:
        tm = TaskManager()
        finished: list[str] = []

        async def _second() -> None:
            await asyncio.sleep(0.01)
            finished.append("second")

        async def _first() -> None:
            tm.add(asyncio.create_task(_second()))
            finished.append("first")

        tm.add(asyncio.create_task(_first()), name="send")
        await asyncio.wait_for(tm.await_all(), timeout=1)

        self.assertEqual(finished, ["first", "second"])

    async def test_task_exceptions_are_logged(self) -> None:
        tm = TaskManager()

        async def _boom() -> None:
            raise RuntimeError("boom")

        task = asyncio.create_task(_boom(), name="boom-task")
        with self.assertLogs("melchat.task_manager", level="WARNING") as logs:
            tm.add(task)
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)
        self.assertTrue(any("task.exception" in line for line in logs.output))

    async def test_cancel_all_handles_mixed_tasks(self) -> None:
        tm = TaskManager()
        results: list[str] = []
        tm.add(asyncio.create_task(_sleep_forever(results, "named")), name="n1")
        tm.add(asyncio.create_task(_sleep_forever(results, "anon")))
        await asyncio.sleep(0)

        await tm.cancel_all()

        self.assertCountEqual(results, ["named", "anon"])


if __name__ == "__main__":
    unittest.main()
