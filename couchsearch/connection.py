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

from couchsearch.config import BootstrapSettings
from couchsearch.derivation import (
    CollectionsInput,
    derive_mapping_specs,
    derive_view_document,
    normalize_collections,
)
from couchsearch.engine.reconciler import MappingReconciler
from couchsearch.engine.settle import create_settler
from couchsearch.exceptions import BootstrapError, EngineError, StoreError
from couchsearch.models import BootstrapResult, ViewDocument
from couchsearch.store.installer import ViewInstaller

logger = logging.getLogger(__name__)


class Bootstrapper:
    """Installs the view document, then reconciles the search index, and hands back both clients"""

    def __init__(self, installer: Optional[ViewInstaller] = None, reconciler: Optional[MappingReconciler] = None):
        self.installer = installer or ViewInstaller()
        self.reconciler = reconciler
        # Set by each call, for callers that wait on its mapping writes
        self.last_reconciler: Optional[MappingReconciler] = None
        self.last_view_document: Optional[ViewDocument] = None

    async def bootstrap(self, config: BootstrapSettings, collections: CollectionsInput) -> BootstrapResult:
        """
        Bootstrap the document store and the search engine for ``collections``.

        Args:
            config: Connection settings for both backends
            collections: Collection set, see ``normalize_collections``

        Returns:
            BootstrapResult: The opened store and engine

        Raises:
            ValueError: The collection set is invalid (checked before any I/O)
            BootstrapError: One of the two phases failed; ``phase`` tells which
        """
        suffix = config.type_suffix
        descriptors = normalize_collections(collections, suffix)
        view_document = derive_view_document([d.name for d in descriptors], suffix)
        specs = derive_mapping_specs(descriptors, config.elasticsearch.index, suffix)

        logger.info(
            f"Bootstrapping {len(descriptors)} collections: "
            f"{len(view_document.views)} views, {len(specs)} mappings"
        )

        try:
            store = await self.installer.install(config.couchbase, view_document)
        except StoreError as e:
            raise BootstrapError(BootstrapError.STORE, e) from e

        reconciler = self.reconciler or MappingReconciler(settler=create_settler(config))
        self.last_reconciler = reconciler
        self.last_view_document = view_document

        try:
            engine = await reconciler.reconcile(config.elasticsearch, specs)
        except EngineError as e:
            try:
                await store.close()
            except Exception as close_error:
                logger.warning(f"Failed to close document store after engine error: {close_error}")
            raise BootstrapError(BootstrapError.ENGINE, e) from e

        logger.info("Bootstrap completed")
        return BootstrapResult(store=store, engine=engine)


async def bootstrap(config: Optional[BootstrapSettings], collections: CollectionsInput) -> BootstrapResult:
    """Bootstrap with the default Couchbase and Elasticsearch clients"""
    if config is None:
        from couchsearch.config import settings

        config = settings
    return await Bootstrapper().bootstrap(config, collections)
