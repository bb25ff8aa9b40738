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

import logging
from typing import Optional

from couchsearch.config import CouchbaseSettings
from couchsearch.exceptions import StoreConnectionError, StoreWriteError
from couchsearch.models import ViewDocument
from couchsearch.store.base import DocumentStore, StoreOpener

logger = logging.getLogger(__name__)


class ViewInstaller:
    """Opens the document store and installs the combined view document"""

    def __init__(self, open_store: Optional[StoreOpener] = None):
        if open_store is None:
            from couchsearch.store.couchbase_store import CouchbaseStore

            open_store = CouchbaseStore.open
        self.open_store = open_store

    async def install(self, config: CouchbaseSettings, view_document: ViewDocument) -> DocumentStore:
        """
        Upsert ``view_document`` under the bucket's own name.

        Args:
            config: Document store connection settings
            view_document: Derived view document

        Returns:
            DocumentStore: The opened store, left open for the caller

        Raises:
            StoreConnectionError: The store could not be opened
            StoreWriteError: The upsert was rejected
        """
        try:
            store = await self.open_store(config)
        except Exception as e:
            logger.error(f"Failed to open document store bucket '{config.bucket_name}': {e}")
            raise StoreConnectionError(f"Cannot open bucket '{config.bucket_name}': {e}", e) from e

        try:
            await store.upsert_view_document(config.bucket_name, view_document)
        except Exception as e:
            logger.error(f"Failed to upsert design document '{config.bucket_name}': {e}")
            await self._close_quietly(store)
            raise StoreWriteError(f"Design document '{config.bucket_name}' rejected: {e}", e) from e

        logger.info(f"Installed design document '{config.bucket_name}' with views {sorted(view_document.views)}")
        return store

    @staticmethod
    async def _close_quietly(store: DocumentStore):
        try:
            await store.close()
        except Exception as e:
            logger.warning(f"Failed to close document store after write error: {e}")
