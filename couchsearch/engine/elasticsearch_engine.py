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
from typing import Any, Dict, Optional, Set

from elasticsearch import AsyncElasticsearch

from couchsearch.config import ElasticsearchSettings
from couchsearch.engine.base import SearchEngine

logger = logging.getLogger(__name__)

# Key under the index mapping's ``_meta`` that records the installed types
TYPES_META_KEY = "couchsearch_types"


def _body(response: Any) -> Dict[str, Any]:
    return getattr(response, "body", response) or {}


class ElasticsearchEngine(SearchEngine):
    """
    Elasticsearch 8.x adapter.

    Elasticsearch 8 has no mapping types: an index holds a single mapping.
    Each collection type is installed by merging its ``properties`` into that
    mapping and recording the type, with its field names, under
    ``_meta.couchsearch_types``. ``get_mappings`` reads that record, never the
    structural keys (``properties``, ``dynamic``, ...) of the mapping itself.

    ``_meta`` is replaced wholesale on every put, so updates to the record
    are serialised through a lock on this engine. Field mappings cannot be
    removed from a live index: ``delete_mapping`` only drops the type from the
    record and the following put re-declares its fields.
    """

    def __init__(self, config: ElasticsearchSettings, client: Optional[AsyncElasticsearch] = None):
        self.config = config
        self.index = config.index
        self._client = client or AsyncElasticsearch(hosts=config.host)
        self._meta_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, config: ElasticsearchSettings) -> "ElasticsearchEngine":
        for name in ("elasticsearch", "elastic_transport"):
            logging.getLogger(name).setLevel(config.log)
        return cls(config)

    @property
    def handle(self) -> AsyncElasticsearch:
        return self._client

    async def index_exists(self, index: str) -> bool:
        return bool(await self._client.indices.exists(index=index))

    async def create_index(self, index: str, settings: Dict[str, Any]) -> None:
        await self._client.indices.create(index=index, settings=settings)
        logger.info(f"Created Elasticsearch index '{index}' with settings {settings}")

    async def _read_mapping(self, index: str) -> Dict[str, Any]:
        body = _body(await self._client.indices.get_mapping(index=index))
        # An alias resolves to the concrete index name in the response
        entry = body.get(index)
        if entry is None and len(body) == 1:
            entry = next(iter(body.values()))
        return (entry or {}).get("mappings") or {}

    async def _read_types(self, index: str) -> Dict[str, Any]:
        meta = (await self._read_mapping(index)).get("_meta") or {}
        return dict(meta.get(TYPES_META_KEY) or {})

    async def get_mappings(self, index: str) -> Set[str]:
        return set(await self._read_types(index))

    async def put_mapping(self, index: str, type_name: str, body: Dict[str, Any]) -> None:
        properties = body.get("properties") or {}
        async with self._meta_lock:
            types = await self._read_types(index)
            types[type_name] = {"fields": sorted(properties)}
            await self._client.indices.put_mapping(
                index=index, properties=properties, meta={TYPES_META_KEY: types}
            )
        logger.debug(f"Put mapping for type '{type_name}' on '{index}'")

    async def delete_mapping(self, index: str, type_name: str) -> None:
        async with self._meta_lock:
            types = await self._read_types(index)
            if types.pop(type_name, None) is None:
                return
            await self._client.indices.put_mapping(index=index, meta={TYPES_META_KEY: types})
        logger.debug(f"Dropped type '{type_name}' from the mapping record of '{index}'")

    async def close(self) -> None:
        await self._client.close()
