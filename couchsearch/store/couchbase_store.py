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
from datetime import timedelta
from typing import Optional

import httpx
from couchbase.auth import PasswordAuthenticator
from couchbase.bucket import Bucket
from couchbase.cluster import Cluster
from couchbase.options import ClusterOptions

from couchsearch.config import CouchbaseSettings
from couchsearch.models import ViewDocument
from couchsearch.store.base import DocumentStore

logger = logging.getLogger(__name__)

# Set couchbase logger level to WARNING to suppress connection chatter
logging.getLogger("couchbase").setLevel(logging.WARNING)


class CouchbaseStore(DocumentStore):
    """
    Couchbase bucket connection.

    The cluster/bucket objects come from the sync SDK and are opened in a worker
    thread. Design documents go through the views REST API, which accepts the
    full document including its ``options`` block, authenticated with the
    bucket's own credentials when it has them.
    """

    def __init__(self, config: CouchbaseSettings, cluster: Cluster, bucket: Bucket,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._cluster = cluster
        self._bucket = bucket
        self._http_client = http_client or httpx.AsyncClient(timeout=config.timeout)

    @classmethod
    async def open(cls, config: CouchbaseSettings) -> "CouchbaseStore":
        """Connect to the cluster and open the configured bucket"""
        logger.info(f"Opening Couchbase bucket '{config.bucket_name}' on {config.connection_string}")
        cluster, bucket = await asyncio.to_thread(cls._connect, config)
        logger.info(f"Couchbase bucket '{config.bucket_name}' is ready")
        return cls(config, cluster, bucket)

    @staticmethod
    def _connect(config: CouchbaseSettings):
        authenticator = PasswordAuthenticator(config.user, config.password)
        cluster = Cluster(config.connection_string, ClusterOptions(authenticator))
        try:
            cluster.wait_until_ready(timedelta(seconds=config.timeout))
            bucket = cluster.bucket(config.bucket_name)
        except Exception:
            cluster.close()
            raise
        return cluster, bucket

    @property
    def handle(self) -> Bucket:
        return self._bucket

    def design_document_url(self, name: str) -> str:
        c = self.config
        return f"{c.view_scheme}://{c.view_host}:{c.view_port}/{c.bucket_name}/_design/{name}"

    def _auth(self):
        if self.config.bucket_password:
            return (self.config.bucket_name, self.config.bucket_password)
        return (self.config.user, self.config.password)

    async def upsert_view_document(self, name: str, view_document: ViewDocument) -> None:
        url = self.design_document_url(name)
        response = await self._http_client.put(
            url,
            content=view_document.to_json(),
            headers={"Content-Type": "application/json"},
            auth=self._auth(),
        )
        response.raise_for_status()
        logger.debug(f"Design document '{name}' stored with {len(view_document.views)} views")

    async def close(self) -> None:
        await self._http_client.aclose()
        await asyncio.to_thread(self._cluster.close)
        logger.info(f"Couchbase bucket '{self.config.bucket_name}' closed")
