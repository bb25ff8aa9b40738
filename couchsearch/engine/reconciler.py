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

import asyncio
import logging
from typing import Dict, List, Optional

from couchsearch.config import ElasticsearchSettings
from couchsearch.engine.base import BASELINE_INDEX_SETTINGS, EngineFactory, SearchEngine
from couchsearch.engine.settle import FixedIntervalSettler
from couchsearch.exceptions import EngineQueryError, EngineWriteError
from couchsearch.models import MappingSpec

logger = logging.getLogger(__name__)


class MappingReconciler:
    """
    Brings the search index in line with the derived mapping specs.

    One pass per bootstrap call:

    - CheckIndex: an existing index is left untouched and returned as is
    - CreateIndex: a missing index is created with the baseline settings
    - ReconcileMappings: one background task per spec replaces (delete + put)
      or creates the type mapping; failures are logged, never raised
    - Settle: wait for the engine to apply the mappings, then report ready

    Mapping tasks are not awaited by ``reconcile``; ``wait_pending`` gives
    callers a completion barrier when they need one.
    """

    def __init__(self, engine_factory: Optional[EngineFactory] = None, settler=None):
        if engine_factory is None:
            from couchsearch.engine.elasticsearch_engine import ElasticsearchEngine

            engine_factory = ElasticsearchEngine.from_settings
        self.engine_factory = engine_factory
        self.settler = settler or FixedIntervalSettler()
        self._pending: Dict[asyncio.Task, str] = {}

    async def reconcile(self, config: ElasticsearchSettings, specs: List[MappingSpec]) -> SearchEngine:
        """
        Ensure the index exists and sync the mappings of a freshly created one.

        Args:
            config: Search engine connection settings, including the index name
            specs: Derived mapping specs, all targeting ``config.index``

        Returns:
            SearchEngine: The engine client, ready for use

        Raises:
            EngineQueryError: Index existence could not be determined
            EngineWriteError: The index could not be created
        """
        index = config.index
        try:
            engine = self.engine_factory(config)
        except Exception as e:
            logger.error(f"Failed to create Elasticsearch client for {config.host}: {e}")
            raise EngineQueryError(f"Cannot connect to search engine at {config.host}: {e}", e) from e

        try:
            exists = await engine.index_exists(index)
        except Exception as e:
            logger.error(f"Failed to check whether index '{index}' exists: {e}")
            await self._close_quietly(engine)
            raise EngineQueryError(f"Cannot check index '{index}': {e}", e) from e

        if exists:
            logger.info(f"Index '{index}' already exists, skipping mapping reconciliation")
            return engine

        try:
            await engine.create_index(index, dict(BASELINE_INDEX_SETTINGS))
        except Exception as e:
            logger.error(f"Failed to create index '{index}': {e}")
            await self._close_quietly(engine)
            raise EngineWriteError(f"Cannot create index '{index}': {e}", e) from e

        self.start_mapping_sync(engine, specs)
        await self.settler.settle(engine, specs)

        logger.info(f"Index '{index}' is ready with {len(specs)} mapping(s) issued")
        return engine

    def start_mapping_sync(self, engine: SearchEngine, specs: List[MappingSpec]) -> List[asyncio.Task]:
        """Start one mapping sync task per spec without waiting for any of them"""
        tasks = []
        for spec in specs:
            task = asyncio.create_task(self.sync_mapping(engine, spec))
            self._pending[task] = spec.type
            task.add_done_callback(self._discard)
            tasks.append(task)
        return tasks

    def _discard(self, task: asyncio.Task):
        self._pending.pop(task, None)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def wait_pending(self) -> Dict[str, bool]:
        """Wait for every in-flight mapping task; returns type -> success"""
        snapshot = dict(self._pending)
        if not snapshot:
            return {}
        results = await asyncio.gather(*snapshot.keys())
        return dict(zip(snapshot.values(), results))

    async def sync_mapping(self, engine: SearchEngine, spec: MappingSpec) -> bool:
        """
        Replace or create the mapping for one type.

        An existing type mapping is deleted before the new one is put. Any
        failure is logged and ends the sync for this type only.
        """
        try:
            existing = await engine.get_mappings(spec.index)
        except Exception as e:
            logger.error(f"Failed to fetch mappings of index '{spec.index}' for type '{spec.type}': {e}")
            return False

        if spec.type in existing:
            try:
                await engine.delete_mapping(spec.index, spec.type)
            except Exception as e:
                logger.error(f"Failed to delete existing mapping '{spec.index}/{spec.type}': {e}")
                return False
            logger.debug(f"Deleted existing mapping '{spec.index}/{spec.type}'")

        try:
            await engine.put_mapping(spec.index, spec.type, spec.to_body())
        except Exception as e:
            logger.error(f"Failed to put mapping '{spec.index}/{spec.type}': {e}")
            return False

        logger.debug(f"Put mapping '{spec.index}/{spec.type}' with {len(spec.properties)} properties")
        return True

    @staticmethod
    async def _close_quietly(engine: SearchEngine):
        try:
            await engine.close()
        except Exception as e:
            logger.warning(f"Failed to close search engine client: {e}")
