# Copyright 2025 ApeCloud, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Settling strategies run after mapping writes are issued on a new index.

Elasticsearch applies mapping changes asynchronously, so an immediate read or
write against a just-created type can race the cluster state update. The
settler gives the engine time to catch up before the bootstrap reports ready.
"""

import asyncio
import logging
import math
from typing import Awaitable, Callable, List, Set

from tenacity import AsyncRetrying, RetryError, stop_after_attempt, stop_after_delay, wait_fixed

from couchsearch.config import BootstrapSettings
from couchsearch.engine.base import SearchEngine
from couchsearch.models import MappingSpec

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class FixedIntervalSettler:
    """Wait a fixed interval, regardless of what the engine reports"""

    def __init__(self, interval: float = 5.0, sleep: SleepFunc = asyncio.sleep):
        self.interval = interval
        self.sleep = sleep

    async def settle(self, engine: SearchEngine, specs: List[MappingSpec]) -> None:
        logger.info(f"Waiting {self.interval}s for Elasticsearch to apply {len(specs)} mappings")
        await self.sleep(self.interval)


class MappingsPending(Exception):
    def __init__(self, missing: Set[str]):
        super().__init__(f"Mappings not visible yet: {sorted(missing)}")
        self.missing = missing


class MappingPollSettler:
    """
    Poll the index mappings until every expected type is visible.

    Gives up after ``interval`` seconds (or the equivalent number of polls) and
    returns anyway, so the worst case matches the fixed-interval wait.
    """

    def __init__(self, interval: float = 5.0, poll_interval: float = 0.5, sleep: SleepFunc = asyncio.sleep):
        self.interval = interval
        self.poll_interval = poll_interval
        self.sleep = sleep

    @property
    def max_attempts(self) -> int:
        return max(1, math.ceil(self.interval / self.poll_interval) + 1)

    async def _check(self, engine: SearchEngine, expected: Set[str]):
        present = await engine.get_mappings(engine.index)
        missing = expected - set(present)
        if missing:
            raise MappingsPending(missing)

    async def settle(self, engine: SearchEngine, specs: List[MappingSpec]) -> None:
        expected = {spec.type for spec in specs}
        if not expected:
            return

        retrying = AsyncRetrying(
            stop=stop_after_delay(self.interval) | stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.poll_interval),
            sleep=self.sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._check(engine, expected)
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.warning(f"Mappings did not settle within {self.interval}s, continuing anyway: {last}")
            return

        logger.info(f"All {len(expected)} mappings visible on index '{engine.index}'")


def create_settler(config: BootstrapSettings, sleep: SleepFunc = asyncio.sleep):
    if config.settle_strategy == "poll":
        return MappingPollSettler(config.settle_interval, config.settle_poll_interval, sleep=sleep)
    return FixedIntervalSettler(config.settle_interval, sleep=sleep)
